"""Retention sweep for export files and records.

Four independent phases, each best-effort:

1. interrupted jobs: PENDING jobs older than the longest possible generation
   run are failed, so a worker lost mid-job never leaves the owner blocked;
2. expired files: COMPLETED jobs past ``expires_at`` lose their file and record;
3. old records: expired COMPLETED/FAILED records older than the retention
   period are purged in bulk;
4. orphans: files in the export directory that no job references and that are
   older than the grace period are deleted.

A failure inside one phase is logged and the remaining phases still run.
Overlapping sweeps are refused, not queued. The guard is any lock with
``acquire(blocking=False)`` / ``release()`` / ``locked()``: a process-local
``threading.Lock`` by default, a Redis lock in the Celery worker so every
worker process and the scheduled and manual triggers share one guard.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.modules.export.constants import INTERRUPTED_MESSAGE, TASK_HARD_LIMIT_MARGIN_SECONDS
from src.modules.export.job_store import JobStore

logger = logging.getLogger(__name__)

_local_lock = threading.Lock()


@dataclass
class CleanupResult:
    interrupted_jobs: int = 0
    expired_files: int = 0
    old_records: int = 0
    orphaned_files: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class RetentionSweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        export_dir: Path,
        *,
        retention_days: int = 30,
        orphan_grace_minutes: int = 60,
        stale_after_seconds: int = 1800 + TASK_HARD_LIMIT_MARGIN_SECONDS,
        lock=None,
        now: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.export_dir = Path(export_dir)
        self.retention = timedelta(days=retention_days)
        self.orphan_grace = timedelta(minutes=orphan_grace_minutes)
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self._lock = lock if lock is not None else _local_lock
        self._now = now or (lambda: datetime.now(UTC))

    def is_running(self) -> bool:
        return bool(self._lock.locked())

    async def run_cleanup(self) -> CleanupResult | None:
        """Run all phases; ``None`` when another sweep is in progress."""
        if not self._lock.acquire(blocking=False):
            logger.warning("Export cleanup already running, skipping this run")
            return None

        started = time.monotonic()
        result = CleanupResult()
        try:
            logger.info("Starting export cleanup")
            result.interrupted_jobs = await self._run_phase("interrupted jobs", self.fail_interrupted_jobs)
            result.expired_files = await self._run_phase("expired files", self.cleanup_expired_files)
            result.old_records = await self._run_phase("old records", self.purge_old_records)
            result.orphaned_files = await self._run_phase("orphaned files", self.cleanup_orphaned_files)
        finally:
            self._release()

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Export cleanup finished in %dms: interrupted_jobs=%d expired_files=%d "
            "old_records=%d orphaned_files=%d",
            result.duration_ms,
            result.interrupted_jobs,
            result.expired_files,
            result.old_records,
            result.orphaned_files,
        )
        return result

    async def manual_cleanup(self) -> CleanupResult | None:
        logger.info("Manual export cleanup requested")
        return await self.run_cleanup()

    def _release(self) -> None:
        try:
            self._lock.release()
        except Exception:
            # A Redis lock that outlived its timeout is already gone
            logger.warning("Export cleanup lock was no longer held on release", exc_info=True)

    async def _run_phase(self, name: str, phase) -> int:
        try:
            return await phase()
        except Exception:
            logger.exception("Export cleanup phase '%s' failed", name)
            return 0

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def fail_interrupted_jobs(self) -> int:
        """Fail PENDING jobs older than the longest generation run allowed."""
        now = self._now()
        async with self.session_factory() as session:
            failed = await JobStore(session).fail_stale_pending(
                created_before=now - self.stale_after,
                error_message=INTERRUPTED_MESSAGE,
                completed_at=now,
            )
            await session.commit()

        if failed:
            logger.warning("Marked %d interrupted export jobs as FAILED", failed)
        return failed

    async def cleanup_expired_files(self) -> int:
        """Delete files and records of COMPLETED jobs past their expiry."""
        now = self._now()
        deleted = 0

        async with self.session_factory() as session:
            store = JobStore(session)
            expired = [(job.id, job.file_path) for job in await store.list_expired_completed(now)]

            for job_id, file_path in expired:
                try:
                    if file_path:
                        Path(file_path).unlink(missing_ok=True)
                    await store.delete(job_id)
                    await session.commit()
                    deleted += 1
                    logger.debug("Removed expired export %s (%s)", job_id, file_path)
                except Exception:
                    await session.rollback()
                    logger.exception("Failed to remove expired export %s (%s)", job_id, file_path)

        if deleted:
            logger.info("Removed %d expired export files", deleted)
        return deleted

    async def purge_old_records(self) -> int:
        """Bulk-delete terminal records past expiry and older than the retention period."""
        now = self._now()
        async with self.session_factory() as session:
            store = JobStore(session)
            purged = await store.purge_terminal(now, created_before=now - self.retention)
            await session.commit()

        if purged:
            logger.info("Purged %d old export records", purged)
        return purged

    async def cleanup_orphaned_files(self) -> int:
        """Delete unreferenced files older than the grace period."""
        if not self.export_dir.is_dir():
            return 0

        async with self.session_factory() as session:
            known = await JobStore(session).list_file_names()

        cutoff = (self._now() - self.orphan_grace).timestamp()
        deleted = 0
        for entry in self.export_dir.iterdir():
            try:
                if not entry.is_file() or entry.name in known:
                    continue
                if entry.stat().st_mtime >= cutoff:
                    continue
                entry.unlink()
                deleted += 1
                logger.debug("Removed orphaned export file %s", entry.name)
            except FileNotFoundError:
                continue
            except OSError:
                logger.exception("Failed to remove orphaned export file %s", entry.name)

        if deleted:
            logger.info("Removed %d orphaned export files", deleted)
        return deleted


def build_sweeper(session_factory: async_sessionmaker[AsyncSession], lock=None) -> RetentionSweeper:
    """Sweeper configured from application settings."""
    return RetentionSweeper(
        session_factory,
        settings.export_path,
        retention_days=settings.export_record_retention_days,
        orphan_grace_minutes=settings.export_orphan_grace_minutes,
        stale_after_seconds=settings.export_generation_timeout_seconds + TASK_HARD_LIMIT_MARGIN_SECONDS,
        lock=lock,
    )
