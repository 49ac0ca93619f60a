"""
Interest Scheduler

Periodically credits interest on every savings account.

This is a best-effort background refresh, not part of correctness:
a failed round is logged and the next round runs as usual. The task
must be stopped when the directory is disposed, otherwise it keeps
running (and persisting) forever. Use it as an async context manager
to get that for free:

    async with InterestScheduler(directory, interval_seconds=5):
        ...

Rounds go through AccountDirectory.apply_interest_to_all(), which takes
the directory's write lock, so a round never interleaves with a
foreground mutation.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from bankapp.directory import AccountDirectory


class InterestScheduler:
    """Runs interest rounds on a fixed interval until stopped."""

    def __init__(self, directory: AccountDirectory, interval_seconds: float = 5.0):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._directory = directory
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._rounds = 0
        self._logger = structlog.get_logger(__name__)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def rounds_completed(self) -> int:
        return self._rounds

    async def run_once(self) -> dict[UUID, Decimal]:
        """Run a single interest round now."""
        credited = await self._directory.apply_interest_to_all()
        self._rounds += 1
        if credited:
            self._logger.info(
                "interest_round_completed",
                accounts_credited=len(credited),
                total=str(sum(credited.values(), Decimal("0"))),
            )
        return credited

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                self._logger.exception("interest_round_failed")

    def start(self) -> None:
        """Start the background loop. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="bankapp-interest-scheduler")
        self._logger.info("interest_scheduler_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("interest_scheduler_stopped", rounds_completed=self._rounds)

    async def __aenter__(self) -> "InterestScheduler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
