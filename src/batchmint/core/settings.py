"""Application settings and configuration.

This module defines all configuration options for the Batch Mint service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Batch Mint", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./batchmint.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Reveal window. When unset the ledger's revealThreshold() is used.
    reveal_threshold_seconds: int | None = Field(
        default=None,
        alias="REVEAL_THRESHOLD_SECONDS",
    )
    default_reveal_threshold_seconds: int = Field(
        default=300,
        alias="DEFAULT_REVEAL_THRESHOLD_SECONDS",
    )

    # Minting cadence
    nfts_per_user: int = Field(default=5, alias="NFTS_PER_USER")
    mint_interval_seconds: int = Field(default=300, alias="MINT_INTERVAL_SECONDS")
    user_inactivity_seconds: int = Field(default=300, alias="USER_INACTIVITY_SECONDS")

    # Background worker intervals
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    cadence_check_interval_seconds: float = Field(
        default=60.0,
        alias="CADENCE_CHECK_INTERVAL_SECONDS",
    )
    reaper_interval_seconds: float = Field(default=60.0, alias="REAPER_INTERVAL_SECONDS")
    cleanup_interval_seconds: float = Field(default=3600.0, alias="CLEANUP_INTERVAL_SECONDS")

    # Ledger contract integration
    ledger_rpc_url: str | None = Field(default=None, alias="LEDGER_RPC_URL")
    ledger_private_key: str | None = Field(default=None, alias="LEDGER_PRIVATE_KEY")
    ledger_contract_address: str | None = Field(
        default=None,
        alias="LEDGER_CONTRACT_ADDRESS",
    )
    ledger_timeout_seconds: float = Field(default=120.0, alias="LEDGER_TIMEOUT_SECONDS")

    # Weighted metadata URI distribution ({"uri": weight, ...})
    uri_distribution_path: str = Field(
        default="data/designs_distribution.json",
        alias="URI_DISTRIBUTION_PATH",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def ledger_configured(self) -> bool:
        """Return True when every ledger connection parameter is present."""
        return bool(
            self.ledger_rpc_url
            and self.ledger_private_key
            and self.ledger_contract_address
        )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()
