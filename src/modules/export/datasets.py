"""Dataset registry: per export type row fetchers.

Each exportable dataset registers a :class:`DatasetSpec` describing how to
turn export filters into an ordered list of flat row dicts (descriptive
master-data columns joined in), which columns it produces, which date columns
may be filtered on and whether a default date window applies. The worker only
talks to the registry, never to a specific dataset.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import ValidationException
from src.models.asset import AssetMaster
from src.models.asset_scan_log import AssetScanLog
from src.models.asset_status_history import AssetStatusHistory
from src.models.brand import Brand
from src.models.category import Category
from src.models.department import Department
from src.models.enums import ExportType
from src.models.location import Location
from src.models.plant import Plant
from src.models.unit import Unit
from src.models.user import User
from src.modules.export.constants import DEFAULT_ASSET_WINDOW_DAYS, EXPORT_TYPE_LABELS
from src.modules.export.date_rules import DateWindow, apply_defaults, validate_date_range
from src.modules.export.schemas import ExportConfig, ExportFilters

logger = logging.getLogger(__name__)

RowFetcher = Callable[[AsyncSession, ExportFilters, DateWindow | None], Awaitable[list[dict]]]

# Code-list filters a dataset may accept
CODE_FILTERS = ("plant_codes", "location_codes", "status")


@dataclass(frozen=True)
class DatasetSpec:
    export_type: ExportType
    fetch: RowFetcher
    columns: tuple[str, ...]
    # filter alias -> model attribute; first entry is the default
    date_fields: Mapping[str, str]
    filters: frozenset[str] = field(default_factory=frozenset)
    default_window_days: int | None = None

    @property
    def label(self) -> str:
        return EXPORT_TYPE_LABELS[self.export_type]

    def check_config(self, config: ExportConfig) -> None:
        """Reject code filters and column selections this dataset cannot honour."""
        unsupported = [
            name
            for name in CODE_FILTERS
            if getattr(config.filters, name) and name not in self.filters
        ]
        if unsupported:
            raise ValidationException(
                f"Filters not supported for {self.export_type.value} export: "
                f"{', '.join(unsupported)}",
                details=[{"field": f"filters.{name}", "message": "Unsupported filter"} for name in unsupported],
            )

        unknown = [c for c in config.columns if c not in self.columns]
        if unknown:
            raise ValidationException(
                f"Unknown columns for {self.export_type.value} export: {', '.join(unknown)}",
                details=[{"field": "columns", "message": f"Unknown column '{c}'"} for c in unknown],
            )

    def prepare(
        self,
        config: ExportConfig,
        now: datetime,
    ) -> tuple[ExportConfig, DateWindow | None, bool]:
        """Check, default and validate a config against this dataset.

        Returns the effective config, the date window to filter on (if any)
        and whether the dataset's default window was applied.
        """
        self.check_config(config)
        effective, defaulted = apply_defaults(config, now, self.default_window_days)

        date_range = effective.filters.date_range
        window = None
        if date_range is not None and (date_range.from_ or date_range.to):
            window = validate_date_range(date_range, now, self.date_fields)
        return effective, window, defaulted

    def project(self, rows: list[dict], columns: list[str]) -> list[dict]:
        """Restrict rows to the selected columns, keeping the selection order."""
        if not columns:
            return rows
        return [{column: row.get(column) for column in columns} for row in rows]


class DatasetRegistry:
    """Dispatch table of export type -> dataset spec."""

    def __init__(self) -> None:
        self._specs: dict[ExportType, DatasetSpec] = {}

    def register(self, spec: DatasetSpec) -> DatasetSpec:
        self._specs[spec.export_type] = spec
        return spec

    def get(self, export_type: ExportType | str) -> DatasetSpec:
        try:
            return self._specs[ExportType(export_type)]
        except (KeyError, ValueError) as exc:
            label = getattr(export_type, "value", export_type)
            raise ValidationException(f"Unsupported export type: {label}") from exc

    def types(self) -> list[ExportType]:
        return list(self._specs)

    def __contains__(self, export_type: object) -> bool:
        return export_type in self._specs


async def _fetch_rows(session: AsyncSession, statement: Select) -> list[dict]:
    result = await session.execute(statement)
    return [dict(row) for row in result.mappings().all()]


def _within(statement: Select, model, window: DateWindow | None) -> Select:
    if window is None:
        return statement
    column = getattr(model, window.column)
    return statement.where(column >= window.start, column <= window.end)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

_ASSET_COLUMNS = (
    AssetMaster.asset_no,
    AssetMaster.description,
    AssetMaster.plant_code,
    AssetMaster.location_code,
    AssetMaster.dept_code,
    AssetMaster.serial_no,
    AssetMaster.inventory_no,
    AssetMaster.quantity,
    AssetMaster.unit_code,
    AssetMaster.category_code,
    AssetMaster.brand_code,
    AssetMaster.status,
    AssetMaster.created_by,
    AssetMaster.created_at,
    AssetMaster.deactivated_at,
    Plant.description.label("plant_description"),
    Location.description.label("location_description"),
    Department.description.label("department_description"),
    Unit.name.label("unit_name"),
    Category.category_name.label("category_name"),
    Category.description.label("category_description"),
    Brand.brand_name.label("brand_name"),
    Brand.description.label("brand_description"),
    User.full_name.label("created_by_name"),
)


async def fetch_assets(
    session: AsyncSession,
    filters: ExportFilters,
    window: DateWindow | None,
) -> list[dict]:
    """Asset register rows with plant, location, department, unit, category,
    brand and creator descriptions, ordered by asset number."""
    statement = (
        select(*_ASSET_COLUMNS)
        .select_from(AssetMaster)
        .outerjoin(Plant, AssetMaster.plant_code == Plant.plant_code)
        .outerjoin(Location, AssetMaster.location_code == Location.location_code)
        .outerjoin(Department, AssetMaster.dept_code == Department.dept_code)
        .outerjoin(Unit, AssetMaster.unit_code == Unit.unit_code)
        .outerjoin(Category, AssetMaster.category_code == Category.category_code)
        .outerjoin(Brand, AssetMaster.brand_code == Brand.brand_code)
        .outerjoin(User, AssetMaster.created_by == User.user_id)
        .order_by(AssetMaster.asset_no.asc())
    )
    if filters.plant_codes:
        statement = statement.where(AssetMaster.plant_code.in_(filters.plant_codes))
    if filters.location_codes:
        statement = statement.where(AssetMaster.location_code.in_(filters.location_codes))
    if filters.status:
        statement = statement.where(AssetMaster.status.in_([s.value for s in filters.status]))
    statement = _within(statement, AssetMaster, window)

    rows = await _fetch_rows(session, statement)
    logger.info("Fetched %d asset rows", len(rows))
    return rows


# ---------------------------------------------------------------------------
# Scan logs
# ---------------------------------------------------------------------------

_SCAN_LOG_COLUMNS = (
    AssetScanLog.scan_id,
    AssetScanLog.asset_no,
    AssetMaster.description.label("asset_description"),
    AssetScanLog.location_code,
    Location.description.label("location_description"),
    AssetScanLog.scanned_by,
    User.full_name.label("scanned_by_name"),
    AssetScanLog.scanned_at,
)


async def fetch_scan_logs(
    session: AsyncSession,
    filters: ExportFilters,
    window: DateWindow | None,
) -> list[dict]:
    """Scan log rows, newest first."""
    statement = (
        select(*_SCAN_LOG_COLUMNS)
        .select_from(AssetScanLog)
        .outerjoin(AssetMaster, AssetScanLog.asset_no == AssetMaster.asset_no)
        .outerjoin(User, AssetScanLog.scanned_by == User.user_id)
        .outerjoin(Location, AssetScanLog.location_code == Location.location_code)
        .order_by(AssetScanLog.scanned_at.desc(), AssetScanLog.scan_id.desc())
    )
    if filters.location_codes:
        statement = statement.where(AssetScanLog.location_code.in_(filters.location_codes))
    statement = _within(statement, AssetScanLog, window)

    rows = await _fetch_rows(session, statement)
    logger.info("Fetched %d scan log rows", len(rows))
    return rows


# ---------------------------------------------------------------------------
# Status history
# ---------------------------------------------------------------------------

_STATUS_HISTORY_COLUMNS = (
    AssetStatusHistory.history_id,
    AssetStatusHistory.asset_no,
    AssetMaster.description.label("asset_description"),
    AssetStatusHistory.old_status,
    AssetStatusHistory.new_status,
    AssetStatusHistory.changed_at,
    AssetStatusHistory.changed_by,
    User.full_name.label("changed_by_name"),
    AssetStatusHistory.remarks,
)


async def fetch_status_history(
    session: AsyncSession,
    filters: ExportFilters,
    window: DateWindow | None,
) -> list[dict]:
    """Asset status change rows, newest first."""
    statement = (
        select(*_STATUS_HISTORY_COLUMNS)
        .select_from(AssetStatusHistory)
        .outerjoin(AssetMaster, AssetStatusHistory.asset_no == AssetMaster.asset_no)
        .outerjoin(User, AssetStatusHistory.changed_by == User.user_id)
        .order_by(AssetStatusHistory.changed_at.desc(), AssetStatusHistory.history_id.desc())
    )
    statement = _within(statement, AssetStatusHistory, window)

    rows = await _fetch_rows(session, statement)
    logger.info("Fetched %d status history rows", len(rows))
    return rows


# ---------------------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------------------

registry = DatasetRegistry()

registry.register(
    DatasetSpec(
        export_type=ExportType.ASSETS,
        fetch=fetch_assets,
        columns=tuple(column.key for column in _ASSET_COLUMNS),
        date_fields={
            "created_at": "created_at",
            "updated_at": "last_update",
            "last_update": "last_update",
            "deactivated_at": "deactivated_at",
        },
        filters=frozenset({"plant_codes", "location_codes", "status"}),
        default_window_days=DEFAULT_ASSET_WINDOW_DAYS,
    )
)
registry.register(
    DatasetSpec(
        export_type=ExportType.SCAN_LOGS,
        fetch=fetch_scan_logs,
        columns=tuple(column.key for column in _SCAN_LOG_COLUMNS),
        date_fields={"scanned_at": "scanned_at"},
        filters=frozenset({"location_codes"}),
    )
)
registry.register(
    DatasetSpec(
        export_type=ExportType.STATUS_HISTORY,
        fetch=fetch_status_history,
        columns=tuple(column.key for column in _STATUS_HISTORY_COLUMNS),
        date_fields={"changed_at": "changed_at"},
    )
)
