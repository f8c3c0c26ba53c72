"""Export service: submit export jobs, check status, serve downloads, cancel."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    GoneException,
    NotFoundException,
)
from src.models.enums import ExportJobStatus
from src.models.export_job import ExportJob
from src.modules.auth.auth import AuthenticatedUser
from src.modules.export.constants import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_WINDOW_WARNING,
    EXTENSION_CONTENT_TYPES,
)
from src.modules.export.datasets import DatasetRegistry, registry as default_registry
from src.modules.export.job_store import JobStore
from src.modules.export.schemas import (
    ExportCreateRequest,
    ExportJobSummary,
    ExportStatsResponse,
)
from src.schemas.responses import PaginationMeta

logger = logging.getLogger(__name__)

PENDING_CONFLICT_MESSAGE = "You already have an export in progress. Please wait for it to complete."


def content_type_for(file_name: str) -> str:
    return EXTENSION_CONTENT_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _enqueue_generation(job_id: str) -> None:
    from src.modules.export.tasks import generate_export

    generate_export.delay(job_id)


@dataclass(frozen=True)
class DownloadTarget:
    path: Path
    file_name: str
    content_type: str


class ExportService:
    def __init__(
        self,
        db: AsyncSession,
        dispatch: Callable[[str], None] | None = None,
        registry: DatasetRegistry = default_registry,
        now: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.store = JobStore(db)
        self.registry = registry
        self._dispatch = dispatch or _enqueue_generation
        self._now = now or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Create export job
    # ------------------------------------------------------------------

    async def create_export(
        self,
        request: ExportCreateRequest,
        user: AuthenticatedUser,
    ) -> ExportJobSummary:
        """Validate the request, persist a PENDING job and queue generation.

        The job is committed before it is handed to the task queue so the
        worker can always see it. Returns without waiting for generation.
        """
        if await self.store.has_pending(user.id):
            raise ConflictException(PENDING_CONFLICT_MESSAGE)

        spec = self.registry.get(request.export_type)
        now = self._now()
        effective, _, defaulted = spec.prepare(request.config, now)

        job = ExportJob(
            requested_by=user.id,
            export_type=request.export_type,
            config=effective.to_stored(),
            status=ExportJobStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(hours=settings.export_file_ttl_hours),
        )
        try:
            await self.store.create(job)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # Lost the race against a concurrent submission for the same owner
            if await self.store.has_pending(user.id):
                raise ConflictException(PENDING_CONFLICT_MESSAGE) from None
            raise

        status = ExportJobStatus.PENDING
        try:
            self._dispatch(str(job.id))
        except Exception:
            logger.exception("Could not queue export job %s", job.id)
            await self.store.mark_failed(job.id, "Could not queue export job", completed_at=self._now())
            await self.db.commit()
            status = ExportJobStatus.FAILED

        logger.info(
            "Created export job %s: type=%s format=%s for user=%s",
            job.id,
            request.export_type.value,
            effective.format.value,
            user.id,
        )

        warning = None
        if defaulted:
            warning = DEFAULT_WINDOW_WARNING.format(days=spec.default_window_days)

        return ExportJobSummary(
            id=job.id,
            export_type=job.export_type,
            status=status,
            created_at=job.created_at,
            expires_at=job.expires_at,
            warning=warning,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_job(self, job_id: uuid.UUID, user: AuthenticatedUser) -> ExportJob:
        """Return a job the user owns (administrators may read any job)."""
        job = await self.store.get(job_id)
        if job is None:
            raise NotFoundException(f"Export job {job_id} not found")
        if job.requested_by != user.id and not user.is_admin:
            raise ForbiddenException("Access denied")
        return job

    async def get_download(self, job_id: uuid.UUID, user: AuthenticatedUser) -> DownloadTarget:
        job = await self.get_job(job_id, user)

        if job.status == ExportJobStatus.FAILED:
            raise BusinessRuleException(f"Export job failed: {job.error_message or 'unknown error'}")
        if job.status != ExportJobStatus.COMPLETED:
            raise BusinessRuleException("Export is not ready yet")
        if job.expires_at < self._now():
            raise GoneException("Export file has expired")

        path = Path(job.file_path) if job.file_path else None
        if path is None or not path.is_file():
            logger.warning("Export job %s is completed but its file is missing", job_id)
            raise NotFoundException("Export file not found")

        file_name = job.file_name or path.name
        return DownloadTarget(path=path, file_name=file_name, content_type=content_type_for(file_name))

    async def list_history(
        self,
        user: AuthenticatedUser,
        *,
        page: int = 1,
        limit: int = 20,
        status: ExportJobStatus | None = None,
    ) -> tuple[list[ExportJob], PaginationMeta]:
        jobs, total = await self.store.list_for_owner(user.id, page=page, limit=limit, status=status)
        return jobs, PaginationMeta.build(page=page, limit=limit, total_items=total)

    async def get_stats(self, user: AuthenticatedUser) -> ExportStatsResponse:
        """Counts by status, the user's own jobs or every job for administrators."""
        counts = await self.store.count_by_status(None if user.is_admin else user.id)
        return ExportStatsResponse(
            pending=counts[ExportJobStatus.PENDING],
            completed=counts[ExportJobStatus.COMPLETED],
            failed=counts[ExportJobStatus.FAILED],
            total=sum(counts.values()),
        )

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel_export(self, job_id: uuid.UUID, user: AuthenticatedUser) -> None:
        job = await self.get_job(job_id, user)
        if job.status != ExportJobStatus.PENDING:
            raise BusinessRuleException("Cannot cancel completed or failed job")

        deleted = await self.store.delete_pending(job_id)
        await self.db.commit()
        if not deleted:
            # The worker reached a terminal state first
            raise BusinessRuleException("Cannot cancel completed or failed job")

        logger.info("Cancelled export job %s for user=%s", job_id, user.id)


