"""Celery application configuration for AssetTrack export tasks."""

from celery import Celery
from celery.schedules import crontab

from src.config import settings

celery = Celery("assettrack")

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # --- Queue routing ---
    task_routes={
        "src.modules.export.tasks.generate_export": {"queue": "exports"},
        "src.modules.export.tasks.cleanup_exports": {"queue": "exports-maintenance"},
    },
    # --- Reliability settings ---
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    # --- Broker transport options (Redis reliability) ---
    broker_transport_options={
        "max_retries": 10,
        "interval_start": 0.2,
        "interval_step": 0.5,
        "interval_max": 5.0,
        "retry_on_timeout": True,
        # Longer than the export time limit so running jobs are not redelivered
        "visibility_timeout": settings.export_generation_timeout_seconds + 600,
    },
    # --- Beat schedule ---
    beat_schedule={
        "cleanup-exports-daily": {
            "task": "src.modules.export.tasks.cleanup_exports",
            "schedule": crontab(
                hour=settings.export_cleanup_hour,
                minute=settings.export_cleanup_minute,
            ),
        },
    },
)

celery.autodiscover_tasks(["src.modules.export"])
