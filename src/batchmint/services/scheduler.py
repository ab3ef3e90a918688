"""Background loops for cleanup, issuance cadence and the inactivity reaper.

This module provides the MintSchedulerWorker class that drives the periodic
work of the engine from inside the application's event loop:

- Global cleanup of expired batches and orphaned metadata
- The per-account cadence check that issues new batches
- The reaper that forgets inactive accounts
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError

from batchmint.core.settings import settings
from batchmint.services.engine import MintEngine, get_engine
from batchmint.services.errors import MintError

# Configure logger for this module
logger = logging.getLogger(__name__)


class MintSchedulerWorker:
    """Runs the engine's periodic tasks until stopped.

    Each task has its own loop, so a slow issuance round never delays
    cleanup. A failing tick is logged and the loop carries on with the next
    one.
    """

    def __init__(
        self,
        engine: MintEngine | None = None,
        cleanup_interval: float | None = None,
        cadence_interval: float | None = None,
        reaper_interval: float | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            engine: Optional engine instance. If None, uses the global engine.
            cleanup_interval: Seconds between global cleanups.
            cadence_interval: Seconds between cadence checks.
            reaper_interval: Seconds between inactivity reaper passes.
        """
        self.engine = engine or get_engine()
        self.cleanup_interval = (
            settings.cleanup_interval_seconds if cleanup_interval is None else cleanup_interval
        )
        self.cadence_interval = (
            settings.cadence_check_interval_seconds
            if cadence_interval is None
            else cadence_interval
        )
        self.reaper_interval = (
            settings.reaper_interval_seconds if reaper_interval is None else reaper_interval
        )
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start the background loops; cleanup runs once immediately."""
        if self.running:
            return

        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run("cleanup", self._cleanup_once, self.cleanup_interval)),
            asyncio.create_task(
                self._run(
                    "cadence",
                    self._cadence_once,
                    self.cadence_interval,
                    initial_delay=self.cadence_interval,
                )
            ),
            asyncio.create_task(
                self._run(
                    "reaper",
                    self._reap_once,
                    self.reaper_interval,
                    initial_delay=self.reaper_interval,
                )
            ),
        ]
        logger.info(
            "Scheduler started (cleanup every %ss, cadence every %ss, reaper every %ss)",
            self.cleanup_interval,
            self.cadence_interval,
            self.reaper_interval,
        )

    async def stop(self) -> None:
        """Stop the background loops, then wait for in-flight background issuance."""
        if not self._tasks:
            return

        self._stopping.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        await self.engine.cadence.drain()

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if the worker was stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=max(0.01, seconds))
        except TimeoutError:
            return False
        return True

    async def _run(
        self,
        name: str,
        tick: Callable[[], Awaitable[None]],
        interval: float,
        initial_delay: float = 0.0,
    ) -> None:
        if initial_delay and await self._wait(initial_delay):
            return

        while not self._stopping.is_set():
            try:
                await tick()
            except (MintError, SQLAlchemyError) as e:
                logger.warning("Scheduler %s tick failed: %s", name, e)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("Scheduler %s tick encountered network error: %s", name, e)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("Scheduler %s tick encountered error: %s", name, e, exc_info=True)
            except Exception:
                logger.exception("Scheduler %s tick failed unexpectedly", name)

            if await self._wait(interval):
                return

    async def _cleanup_once(self) -> None:
        result = await self.engine.run_global_cleanup()
        if not result.success:
            logger.warning("Scheduled cleanup failed: %s", result.error)

    async def _cadence_once(self) -> None:
        await self.engine.cadence.periodic_cadence_check()

    async def _reap_once(self) -> None:
        result = await self.engine.reap_inactive()
        if result.success and result.removed_count:
            logger.info(
                "Reaped %d inactive accounts, %d remaining",
                result.removed_count,
                result.remaining_count,
            )
