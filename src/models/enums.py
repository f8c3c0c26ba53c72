import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
    VIEWER = "viewer"


class AssetStatus(str, enum.Enum):
    ACTIVE = "A"
    CREATED = "C"
    INACTIVE = "I"


# ── Export pipeline ─────────────────────────────────────────────────────────


class ExportType(str, enum.Enum):
    ASSETS = "assets"
    SCAN_LOGS = "scan_logs"
    STATUS_HISTORY = "status_history"


class ExportFormat(str, enum.Enum):
    CSV = "csv"
    XLSX = "xlsx"


class ExportJobStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ExportPeriod(str, enum.Enum):
    TODAY = "today"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    LAST_180_DAYS = "last_180_days"
    LAST_365_DAYS = "last_365_days"
    CUSTOM = "custom"
