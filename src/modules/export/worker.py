"""Export worker: generates the file for one export job.

``ExportWorker.process`` is the body of the ``generate_export`` Celery task.
It re-applies the dataset defaults and date-range rules, fetches the rows,
writes the file and records exactly one terminal outcome. It never raises;
every failure ends up in the job's ``error_message`` or in the log.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.exceptions import AppException
from src.models.enums import ExportJobStatus, ExportType
from src.modules.export.datasets import DatasetRegistry, registry as default_registry
from src.modules.export.file_writer import build_file_name, write_tabular
from src.modules.export.job_store import JobStore
from src.modules.export.schemas import ExportConfig

logger = logging.getLogger(__name__)


class ExportGenerationError(Exception):
    """Generation produced no usable output."""


@dataclass
class GeneratedFile:
    path: Path
    file_name: str
    file_size: int
    total_records: int
    # Set only when defaulting changed what was stored at submission
    effective_config: dict | None = None


class ExportWorker:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        export_dir: Path,
        timeout_seconds: float,
        registry: DatasetRegistry = default_registry,
        now: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.export_dir = Path(export_dir)
        self.timeout_seconds = timeout_seconds
        self.registry = registry
        self._now = now or (lambda: datetime.now(UTC))

    async def process(self, job_id: uuid.UUID | str) -> ExportJobStatus | None:
        """Run one job to a terminal state.

        Returns the status the job ended in, or ``None`` when there was
        nothing to do (unknown job, cancelled while running, or the outcome
        could not be recorded).
        """
        try:
            job_id = uuid.UUID(str(job_id))
        except ValueError:
            logger.error("Ignoring export task with malformed job id %r", job_id)
            return None

        async with self.session_factory() as session:
            store = JobStore(session)
            job = await store.get(job_id)
            if job is None:
                logger.warning("Export job %s not found, nothing to generate", job_id)
                return None
            if job.status != ExportJobStatus.PENDING:
                logger.info("Export job %s already %s, skipping", job_id, job.status.value)
                return job.status

            export_type = job.export_type
            stored_config = dict(job.config or {})
            logger.info("Generating export job %s (type=%s)", job_id, export_type.value)

            generated: GeneratedFile | None = None
            error: str | None = None
            try:
                generated = await asyncio.wait_for(
                    self._generate(session, job_id, export_type, stored_config),
                    timeout=self.timeout_seconds,
                )
            except TimeoutError:
                error = f"Export generation timed out after {self.timeout_seconds:g} seconds"
                logger.error("Export job %s timed out", job_id)
            except AppException as exc:
                error = exc.message
                logger.warning("Export job %s rejected: %s", job_id, error)
            except Exception as exc:
                error = str(exc) or exc.__class__.__name__
                logger.exception("Export job %s failed", job_id)

            if generated is None:
                return await self._record_failure(session, store, job_id, error)
            return await self._record_success(session, store, job_id, generated)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _generate(
        self,
        session: AsyncSession,
        job_id: uuid.UUID,
        export_type: ExportType,
        stored_config: dict,
    ) -> GeneratedFile:
        spec = self.registry.get(export_type)
        now = self._now()

        config = ExportConfig.model_validate(stored_config)
        effective, window, _ = spec.prepare(config, now)

        rows = await spec.fetch(session, effective.filters, window)
        rows = spec.project(rows, effective.columns)

        self.export_dir.mkdir(parents=True, exist_ok=True)
        file_name = build_file_name(export_type, job_id, effective.format, now)
        path = self.export_dir / file_name

        try:
            size = await asyncio.to_thread(write_tabular, path, rows, effective.format, spec.label)
            if size <= 0:
                raise ExportGenerationError("Generated export file is empty")
        except BaseException:
            _discard(path)
            raise

        stored = effective.to_stored()
        return GeneratedFile(
            path=path,
            file_name=file_name,
            file_size=size,
            total_records=len(rows),
            effective_config=stored if stored != stored_config else None,
        )

    # ------------------------------------------------------------------
    # Terminal outcome
    # ------------------------------------------------------------------

    async def _record_success(
        self,
        session: AsyncSession,
        store: JobStore,
        job_id: uuid.UUID,
        generated: GeneratedFile,
    ) -> ExportJobStatus | None:
        try:
            recorded = await store.mark_completed(
                job_id,
                file_path=str(generated.path),
                file_name=generated.file_name,
                file_size=generated.file_size,
                total_records=generated.total_records,
                completed_at=self._now(),
                config=generated.effective_config,
            )
            await session.commit()
        except Exception:
            logger.exception("Could not record completion of export job %s", job_id)
            _discard(generated.path)
            return None

        if not recorded:
            logger.warning(
                "Export job %s was cancelled during generation, removing %s",
                job_id,
                generated.file_name,
            )
            _discard(generated.path)
            return None

        logger.info(
            "Export job %s completed: %d records, %d bytes",
            job_id,
            generated.total_records,
            generated.file_size,
        )
        return ExportJobStatus.COMPLETED

    async def _record_failure(
        self,
        session: AsyncSession,
        store: JobStore,
        job_id: uuid.UUID,
        error: str | None,
    ) -> ExportJobStatus | None:
        try:
            # A timed-out or failed query may have left the transaction unusable
            await session.rollback()
            recorded = await store.mark_failed(
                job_id,
                error or "Export generation failed",
                completed_at=self._now(),
            )
            await session.commit()
        except Exception:
            logger.exception("Could not record failure of export job %s", job_id)
            return None

        if not recorded:
            logger.warning("Export job %s was cancelled before it failed", job_id)
            return None
        return ExportJobStatus.FAILED


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.exception("Could not remove export file %s", path)
