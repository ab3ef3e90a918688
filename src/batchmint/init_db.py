"""Create the schema on the configured database without running migrations."""

from batchmint.db.session import SessionLocal, create_tables
from batchmint.services.allocator import ensure_counter_row


def init_db() -> None:
    """Initialize the database by creating all tables and the counter row."""
    create_tables()
    with SessionLocal() as db:
        ensure_counter_row(db)
        db.commit()


if __name__ == "__main__":
    init_db()
    print("Database initialized.")
