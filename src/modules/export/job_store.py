"""Persistence for export-job records.

Every state change that can race with another actor (the worker finishing a
job, the owner cancelling it) is a conditional statement on
``status = 'PENDING'`` and reports whether it matched a row. The store only
flushes; committing is the caller's job.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import ExportJobStatus
from src.models.export_job import ExportJob

logger = logging.getLogger(__name__)


class JobStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create(self, job: ExportJob) -> ExportJob:
        self.db.add(job)
        await self.db.flush()
        return job

    async def get(self, job_id: uuid.UUID) -> ExportJob | None:
        result = await self.db.execute(select(ExportJob).where(ExportJob.id == job_id))
        return result.scalar_one_or_none()

    async def has_pending(self, owner: str) -> bool:
        result = await self.db.execute(
            select(ExportJob.id)
            .where(
                ExportJob.requested_by == owner,
                ExportJob.status == ExportJobStatus.PENDING,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_owner(
        self,
        owner: str,
        *,
        page: int = 1,
        limit: int = 20,
        status: ExportJobStatus | None = None,
    ) -> tuple[list[ExportJob], int]:
        """Return one page of the owner's jobs (newest first) and the total count."""
        base = select(ExportJob).where(ExportJob.requested_by == owner)
        if status is not None:
            base = base.where(ExportJob.status == status)

        count_result = await self.db.execute(select(func.count()).select_from(base.subquery()))
        total = count_result.scalar_one()

        result = await self.db.execute(
            base.order_by(ExportJob.created_at.desc(), ExportJob.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_by_status(self, owner: str | None = None) -> dict[ExportJobStatus, int]:
        """Job counts per status, for one owner or (``owner=None``) everyone."""
        query = select(ExportJob.status, func.count()).group_by(ExportJob.status)
        if owner is not None:
            query = query.where(ExportJob.requested_by == owner)
        result = await self.db.execute(query)

        counts = {status: 0 for status in ExportJobStatus}
        for status, count in result.all():
            counts[ExportJobStatus(status)] = count
        return counts

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def mark_completed(
        self,
        job_id: uuid.UUID,
        *,
        file_path: str,
        file_name: str,
        file_size: int,
        total_records: int,
        completed_at: datetime,
        config: dict | None = None,
    ) -> bool:
        """PENDING -> COMPLETED. False when the job is gone or already terminal."""
        values = {
            "status": ExportJobStatus.COMPLETED,
            "file_path": file_path,
            "file_name": file_name,
            "file_size": file_size,
            "total_records": total_records,
            "error_message": None,
            "completed_at": completed_at,
        }
        if config is not None:
            values["config"] = config
        return await self._transition(job_id, values)

    async def mark_failed(
        self,
        job_id: uuid.UUID,
        error_message: str,
        completed_at: datetime,
    ) -> bool:
        """PENDING -> FAILED. False when the job is gone or already terminal."""
        return await self._transition(
            job_id,
            {
                "status": ExportJobStatus.FAILED,
                "error_message": error_message,
                "file_path": None,
                "completed_at": completed_at,
            },
        )

    async def _transition(self, job_id: uuid.UUID, values: dict) -> bool:
        result = await self.db.execute(
            update(ExportJob)
            .where(ExportJob.id == job_id, ExportJob.status == ExportJobStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_pending(self, job_id: uuid.UUID) -> bool:
        """Delete the job only while it is still PENDING."""
        result = await self.db.execute(
            delete(ExportJob)
            .where(ExportJob.id == job_id, ExportJob.status == ExportJobStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete(self, job_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(ExportJob)
            .where(ExportJob.id == job_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Retention queries
    # ------------------------------------------------------------------

    async def list_expired_completed(self, now: datetime) -> list[ExportJob]:
        result = await self.db.execute(
            select(ExportJob)
            .where(
                ExportJob.status == ExportJobStatus.COMPLETED,
                ExportJob.expires_at < now,
            )
            .order_by(ExportJob.expires_at)
        )
        return list(result.scalars().all())

    async def purge_terminal(self, now: datetime, created_before: datetime) -> int:
        """Bulk-delete expired COMPLETED/FAILED records created before the cutoff."""
        result = await self.db.execute(
            delete(ExportJob)
            .where(
                ExportJob.status.in_([ExportJobStatus.COMPLETED, ExportJobStatus.FAILED]),
                ExportJob.expires_at < now,
                ExportJob.created_at < created_before,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def fail_stale_pending(
        self,
        created_before: datetime,
        error_message: str,
        completed_at: datetime,
    ) -> int:
        """PENDING -> FAILED for jobs no worker can still be generating."""
        result = await self.db.execute(
            update(ExportJob)
            .where(
                ExportJob.status == ExportJobStatus.PENDING,
                ExportJob.created_at < created_before,
            )
            .values(
                status=ExportJobStatus.FAILED,
                error_message=error_message,
                file_path=None,
                completed_at=completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def list_file_names(self) -> set[str]:
        result = await self.db.execute(
            select(ExportJob.file_name).where(ExportJob.file_name.is_not(None))
        )
        return set(result.scalars().all())
