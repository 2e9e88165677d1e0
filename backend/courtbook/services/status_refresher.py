"""
Slot status refresher.

Periodically recomputes the derived is_full flag of upcoming availability
rows from live booking counts, so flags drift back into line after a
failed saga step 6 or an administrative change.

Runs as an asyncio task owned by the backend lifespan: start() schedules
it, stop() cancels it and waits for the current tick to finish. Ticks
never overlap. Uses synchronous DB access via asyncio.to_thread.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.generated import Availabilities
from .civil_time import format_instant
from .slots.config import BookingConfig, get_booking_config
from .slots.matching import refresh_full_flags

logger = logging.getLogger(__name__)


def refresh_upcoming(
    db: Session,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> list[int]:
    """
    Recompute is_full for rows ending after now and starting within the horizon.

    Returns:
        Ids whose flag changed (committed).
    """
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)
    horizon = now + timedelta(days=config.refresh_horizon_days)

    rows = (
        db.query(Availabilities)
        .filter(
            Availabilities.end_time > format_instant(now),
            Availabilities.start_time < format_instant(horizon),
        )
        .all()
    )

    changed = refresh_full_flags(db, rows)
    db.commit()
    return changed


class StatusRefresher:
    """Cancellable fixed-cadence task around refresh_upcoming()."""

    def __init__(
        self,
        interval_seconds: float,
        session_factory: Callable[[], Session] = SessionLocal,
        config: BookingConfig | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.config = config
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._tick_future: Optional[asyncio.Future] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._loop(), name="status_refresher")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        # Cancellation does not interrupt the worker thread; let it finish
        tick, self._tick_future = self._tick_future, None
        if tick is not None and not tick.done():
            try:
                await tick
            except Exception:
                logger.exception("status_refresher error in final tick")
        logger.info("status_refresher stopped")

    async def _loop(self) -> None:
        logger.info(f"status_refresher started (every {self.interval_seconds}s)")
        while True:
            try:
                self._tick_future = asyncio.ensure_future(asyncio.to_thread(self._tick))
                await asyncio.shield(self._tick_future)
            except asyncio.CancelledError:
                logger.info("status_refresher cancelled")
                raise
            except Exception:
                logger.exception("status_refresher error")

            await asyncio.sleep(self.interval_seconds)

    def _tick(self) -> None:
        """One synchronous refresh pass."""
        db = self.session_factory()
        try:
            changed = refresh_upcoming(db, config=self.config)
            self.ticks += 1
            if changed:
                logger.info(f"status_refresher: {len(changed)} availabilities re-flagged")
        finally:
            db.close()
