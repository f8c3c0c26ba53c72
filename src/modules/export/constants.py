"""Export content types, file naming, date-range limits and labels."""

from __future__ import annotations

from src.models.enums import ExportFormat, ExportPeriod, ExportType

# ---------------------------------------------------------------------------
# Content types per export format
# ---------------------------------------------------------------------------

FORMAT_CONTENT_TYPES: dict[ExportFormat, str] = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

EXTENSION_CONTENT_TYPES: dict[str, str] = {
    f".{fmt.value}": content_type for fmt, content_type in FORMAT_CONTENT_TYPES.items()
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# ---------------------------------------------------------------------------
# Labels (used as worksheet titles)
# ---------------------------------------------------------------------------

EXPORT_TYPE_LABELS: dict[ExportType, str] = {
    ExportType.ASSETS: "Assets Export",
    ExportType.SCAN_LOGS: "Scan Logs Export",
    ExportType.STATUS_HISTORY: "Status History Export",
}

EMPTY_EXPORT_PLACEHOLDER = "No data to export"

# ---------------------------------------------------------------------------
# Date range rules
# ---------------------------------------------------------------------------

DEFAULT_ASSET_WINDOW_DAYS = 30
MAX_DATE_RANGE_DAYS = 365
MAX_LOOKBACK_YEARS = 2

# Days covered by each predefined period, today included
PERIOD_DAYS: dict[ExportPeriod, int] = {
    ExportPeriod.TODAY: 1,
    ExportPeriod.LAST_7_DAYS: 7,
    ExportPeriod.LAST_30_DAYS: 30,
    ExportPeriod.LAST_90_DAYS: 90,
    ExportPeriod.LAST_180_DAYS: 180,
    ExportPeriod.LAST_365_DAYS: 365,
}

DEFAULT_WINDOW_WARNING = (
    "No date range specified. Export limited to last {days} days for performance."
)

# ---------------------------------------------------------------------------
# History paging
# ---------------------------------------------------------------------------

HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100

# ---------------------------------------------------------------------------
# Generation limits and retention sweep
# ---------------------------------------------------------------------------

# Celery limits sit above the in-process timeout so the worker can record FAILED
TASK_SOFT_LIMIT_MARGIN_SECONDS = 60
TASK_HARD_LIMIT_MARGIN_SECONDS = 120

INTERRUPTED_MESSAGE = "Export generation was interrupted"

CLEANUP_LOCK_NAME = "exports:cleanup:lock"
