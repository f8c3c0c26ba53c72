"""Celery tasks for exports: file generation and the daily retention sweep."""

from __future__ import annotations

import asyncio
import logging

import redis

from celery_app import celery
from src.config import settings
from src.database.engine import worker_session
from src.modules.export.cleanup import RetentionSweeper, build_sweeper
from src.modules.export.constants import (
    CLEANUP_LOCK_NAME,
    TASK_HARD_LIMIT_MARGIN_SECONDS,
    TASK_SOFT_LIMIT_MARGIN_SECONDS,
)
from src.modules.export.worker import ExportWorker

logger = logging.getLogger(__name__)

_SOFT_TIME_LIMIT = settings.export_generation_timeout_seconds + TASK_SOFT_LIMIT_MARGIN_SECONDS
_TIME_LIMIT = settings.export_generation_timeout_seconds + TASK_HARD_LIMIT_MARGIN_SECONDS


def build_worker() -> ExportWorker:
    return ExportWorker(
        worker_session,
        settings.export_path,
        timeout_seconds=settings.export_generation_timeout_seconds,
    )


def build_cleanup_lock():
    """Redis lock shared by every worker process running the sweep."""
    client = redis.Redis.from_url(settings.celery_broker_url)
    return client.lock(CLEANUP_LOCK_NAME, timeout=settings.export_cleanup_lock_seconds)


def build_task_sweeper() -> RetentionSweeper:
    return build_sweeper(worker_session, lock=build_cleanup_lock())


@celery.task(
    name="src.modules.export.tasks.generate_export",
    soft_time_limit=_SOFT_TIME_LIMIT,
    time_limit=_TIME_LIMIT,
)
def generate_export(job_id: str):
    """Generate the file for one PENDING export job."""
    status = asyncio.run(build_worker().process(job_id))
    logger.info("generate_export finished for %s: %s", job_id, status.value if status else None)
    return status.value if status else None


@celery.task(name="src.modules.export.tasks.cleanup_exports")
def cleanup_exports(manual: bool = False):
    """Retention sweep, run daily by beat and on demand from the admin API."""
    sweeper = build_task_sweeper()
    result = asyncio.run(sweeper.manual_cleanup() if manual else sweeper.run_cleanup())
    if result is None:
        return {"skipped": True}
    logger.info("cleanup_exports complete: %s", result.to_dict())
    return result.to_dict()
