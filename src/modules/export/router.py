"""Data Export API router: job submission, status, download, history, cleanup."""

import asyncio
import uuid
from pathlib import Path

from celery.exceptions import TimeoutError as CeleryTimeoutError
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import FileResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.database.session import get_db
from src.exceptions import ConflictException
from src.models.enums import ExportJobStatus
from src.modules.auth.auth import AuthenticatedUser, get_current_user, require_admin
from src.modules.export.constants import HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT
from src.modules.export.schemas import (
    CleanupQueuedResponse,
    CleanupResponse,
    ExportCreateRequest,
    ExportJobListResponse,
    ExportJobResponse,
    ExportJobSummary,
    ExportStatsResponse,
    MessageResponse,
    StorageFilesResponse,
    StorageStatsResponse,
)
from src.modules.export.service import ExportService
from src.modules.export.storage import get_storage_stats
from src.schemas.responses import ErrorResponse

router = APIRouter(prefix="/exports", tags=["exports"])
limiter = Limiter(key_func=get_remote_address)

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_export_service(db: AsyncSession = Depends(get_db)) -> ExportService:
    return ExportService(db)


def get_export_dir() -> Path:
    return settings.export_path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_job_response(job) -> ExportJobResponse:
    """Build an ExportJobResponse from an ExportJob model instance."""
    resp = ExportJobResponse.model_validate(job)
    if job.status == ExportJobStatus.COMPLETED:
        resp.download_url = f"/api/v1/exports/download/{job.id}"
    return resp


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@router.post(
    "/jobs",
    response_model=ExportJobSummary,
    status_code=201,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
@limiter.limit("1000/15minutes")
async def create_export(
    request: Request,
    body: ExportCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    """Request a new export (type, format, filters, columns).

    The job is created PENDING and generated in the background; poll
    ``GET /jobs/{id}`` for the outcome.
    """
    return await svc.create_export(request=body, user=user)


@router.get("/jobs/{job_id}", response_model=ExportJobResponse, responses=_ERRORS)
async def get_export_job(
    job_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    """Get export job status (with a download URL once completed)."""
    job = await svc.get_job(job_id, user)
    return _build_job_response(job)


@router.delete("/jobs/{job_id}", response_model=MessageResponse, responses=_ERRORS)
async def cancel_export_job(
    job_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    """Cancel a PENDING export job."""
    await svc.cancel_export(job_id, user)
    return MessageResponse(message="Export job cancelled")


@router.get("/download/{job_id}", responses={**_ERRORS, 410: {"model": ErrorResponse}})
@limiter.limit("100/15minutes")
async def download_export(
    request: Request,
    job_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    """Stream the generated file of a completed, unexpired export."""
    target = await svc.get_download(job_id, user)
    return FileResponse(target.path, media_type=target.content_type, filename=target.file_name)


@router.get("/history", response_model=ExportJobListResponse)
async def list_export_history(
    page: int = Query(1, ge=1),
    limit: int = Query(HISTORY_DEFAULT_LIMIT, ge=1, le=HISTORY_MAX_LIMIT),
    status: ExportJobStatus | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    """The caller's export jobs, newest first."""
    jobs, meta = await svc.list_history(user, page=page, limit=limit, status=status)
    return ExportJobListResponse(items=[_build_job_response(j) for j in jobs], meta=meta)


@router.get("/stats", response_model=ExportStatsResponse)
async def get_export_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    svc: ExportService = Depends(get_export_service),
):
    return await svc.get_stats(user)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


async def _run_cleanup_task() -> tuple[str, dict | None]:
    """Queue the sweep on the worker and wait briefly for its outcome.

    Returns the task id and its result, or ``None`` while it is still running.
    """
    from src.modules.export.tasks import cleanup_exports

    async_result = cleanup_exports.delay(manual=True)
    try:
        outcome = await asyncio.to_thread(
            async_result.get, timeout=settings.export_cleanup_wait_seconds
        )
    except CeleryTimeoutError:
        return async_result.id, None
    return async_result.id, outcome


@router.post(
    "/cleanup",
    response_model=CleanupResponse | CleanupQueuedResponse,
    responses={202: {"model": CleanupQueuedResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit("100/15minutes")
async def run_manual_cleanup(
    request: Request,
    response: Response,
    _admin: AuthenticatedUser = Depends(require_admin),
):
    """Run the retention sweep now (administrators only).

    The sweep runs on the export worker under the same lock as the daily
    run. Answers 202 when it has not finished within the wait period.
    """
    task_id, outcome = await _run_cleanup_task()
    if outcome is None:
        response.status_code = 202
        return CleanupQueuedResponse(task_id=task_id, message="Export cleanup is still running")
    if outcome.get("skipped"):
        raise ConflictException("Export cleanup is already running")
    return CleanupResponse(**outcome)


@router.get("/storage-stats", response_model=StorageStatsResponse)
async def get_export_storage_stats(
    admin: AuthenticatedUser = Depends(require_admin),
    svc: ExportService = Depends(get_export_service),
    export_dir: Path = Depends(get_export_dir),
):
    """Export directory usage and job counts across all users."""
    files = await asyncio.to_thread(get_storage_stats, export_dir)
    return StorageStatsResponse(
        files=StorageFilesResponse(
            total_count=files.total_count,
            total_size_bytes=files.total_size_bytes,
            total_size_formatted=files.total_size_formatted,
        ),
        database=await svc.get_stats(admin),
    )
