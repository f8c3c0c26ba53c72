# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.asset import AssetMaster
from src.models.asset_scan_log import AssetScanLog
from src.models.asset_status_history import AssetStatusHistory
from src.models.brand import Brand
from src.models.category import Category
from src.models.department import Department
from src.models.enums import (
    AssetStatus,
    ExportFormat,
    ExportJobStatus,
    ExportPeriod,
    ExportType,
    UserRole,
)
from src.models.export_job import ExportJob
from src.models.location import Location
from src.models.plant import Plant
from src.models.unit import Unit
from src.models.user import User

__all__ = [
    "AssetMaster",
    "AssetScanLog",
    "AssetStatus",
    "AssetStatusHistory",
    "Brand",
    "Category",
    "Department",
    "ExportFormat",
    "ExportJob",
    "ExportJobStatus",
    "ExportPeriod",
    "ExportType",
    "Location",
    "Plant",
    "Unit",
    "User",
    "UserRole",
]
