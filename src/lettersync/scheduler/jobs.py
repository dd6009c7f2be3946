"""
SyncWorker — runs the sheet reconciler on a fixed interval.

The owning process creates one SyncWorker and passes it to whatever needs
it (API app, bot, CLI). There is no module-level timer state.

Passes never overlap. Within a process run_once() holds an asyncio.Lock;
across processes (worker process vs. API process) it holds a database
lease. A pass requested while another is in flight is skipped rather
than queued.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from lettersync.db.lease import LEASE_TTL_SECONDS, acquire_lease, release_lease
from lettersync.models.sync import SyncLog
from lettersync.sync.reconciler import DEFAULT_BATCH_SIZE, SheetReconciler, SyncResult

logger = logging.getLogger(__name__)

JOB_ID = "sheet_sync"
LEASE_NAME = "sheet_sync"
DEFAULT_INTERVAL_SECONDS = 30

ResultHook = Callable[[SyncResult], Awaitable[None]]


class SyncWorker:
    """Owns the interval schedule and the overlap guard for reconciliation passes."""

    def __init__(
        self,
        engine,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        reconciler: Optional[SheetReconciler] = None,
        on_result: Optional[ResultHook] = None,
    ):
        """
        Args:
            engine: SQLAlchemy engine, used for SyncLog rows and the default reconciler.
            interval_seconds: Time between scheduled passes.
            batch_size: Max change-log records per pass.
            reconciler: SheetReconciler (or AsyncMock in tests).
            on_result: Awaited after a pass with failed records or errors
                       (e.g. a Telegram alert). Its own errors are logged.
        """
        self.engine = engine
        self.batch_size = batch_size
        self.reconciler = reconciler or SheetReconciler(engine)
        self.on_result = on_result
        self._interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._lock = asyncio.Lock()
        self._holder = uuid.uuid4().hex

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self, interval_seconds: Optional[int] = None) -> bool:
        """
        Start interval passes. Must be called with an event loop running.

        Returns:
            False if the worker was already running (interval unchanged).
        """
        if self.is_running():
            return False
        if interval_seconds:
            self._interval_seconds = interval_seconds

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self.run_once,
            trigger="interval",
            seconds=self._interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            kwargs={"trigger": "interval"},
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Sync worker started (every %ds)", self._interval_seconds)
        return True

    def stop(self) -> bool:
        """Stop interval passes. A pass already in flight finishes on its own."""
        if not self.is_running():
            self._scheduler = None
            return False
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Sync worker stopped")
        return True

    async def run_once(
        self, batch_size: Optional[int] = None, trigger: str = "manual"
    ) -> SyncResult:
        """
        Run one reconciliation pass unless one is already in progress.

        Never raises; safe to call from the interval job, the API and the bot.
        """
        if self._lock.locked():
            logger.info("Sync pass skipped (%s): previous pass still running", trigger)
            return SyncResult(skipped=True, errors=["Sync already in progress"])

        async with self._lock:
            if not self._acquire_lease():
                logger.info("Sync pass skipped (%s): another process holds the lease", trigger)
                return SyncResult(skipped=True, errors=["Sync already in progress"])

            started_at = datetime.utcnow()
            try:
                result = await self.reconciler.process_pending_changes(
                    batch_size or self.batch_size
                )
            except Exception as exc:
                logger.exception("Sync pass crashed")
                result = SyncResult(errors=[f"Sync pass crashed: {exc}"])
            finally:
                self._release_lease()

            if result.processed or result.errors:
                logger.info(
                    "Sync pass (%s): processed=%d synced=%d failed=%d errors=%d",
                    trigger,
                    result.processed,
                    result.synced,
                    result.failed,
                    len(result.errors),
                )
                self._record_pass(result, trigger, started_at)

            if (result.failed or result.errors) and self.on_result is not None:
                try:
                    await self.on_result(result)
                except Exception as exc:
                    logger.warning("Sync result hook failed: %s", exc)

            return result

    def _record_pass(self, result: SyncResult, trigger: str, started_at: datetime) -> None:
        if result.errors and not result.synced:
            status = "error"
        elif result.errors or result.failed:
            status = "partial"
        else:
            status = "success"
        try:
            with Session(self.engine) as s:
                s.add(SyncLog(
                    started_at=started_at,
                    finished_at=datetime.utcnow(),
                    trigger=trigger,
                    status=status,
                    processed=result.processed,
                    synced=result.synced,
                    failed=result.failed,
                    error_message="\n".join(result.errors) or None,
                ))
                s.commit()
        except Exception as exc:
            logger.warning("Could not record sync pass: %s", exc)

    def _acquire_lease(self) -> bool:
        try:
            return acquire_lease(self.engine, LEASE_NAME, self._holder, LEASE_TTL_SECONDS)
        except Exception as exc:
            logger.warning("Could not acquire sync lease: %s", exc)
            return False

    def _release_lease(self) -> None:
        try:
            release_lease(self.engine, LEASE_NAME, self._holder)
        except Exception as exc:
            logger.warning("Could not release sync lease: %s", exc)
