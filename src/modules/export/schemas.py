"""Pydantic v2 schemas for the export pipeline: job config and API payloads."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from src.models.enums import AssetStatus, ExportFormat, ExportJobStatus, ExportPeriod, ExportType
from src.schemas.responses import PaginationMeta

Code = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]


# ---------------------------------------------------------------------------
# Job configuration (persisted verbatim in export_jobs.config)
# ---------------------------------------------------------------------------


class DateRange(BaseModel):
    """Date window filter.

    ``from`` / ``to`` are kept as the ISO-8601 strings the client sent so the
    stored config reproduces the request exactly; they are parsed and checked
    by :mod:`src.modules.export.date_rules`.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_: str | None = Field(None, alias="from")
    to: str | None = None
    field: str | None = None
    period: ExportPeriod | None = None


class ExportFilters(BaseModel):
    plant_codes: list[Code] = Field(default_factory=list)
    location_codes: list[Code] = Field(default_factory=list)
    status: list[AssetStatus] = Field(default_factory=list)
    date_range: DateRange | None = None


class ExportConfig(BaseModel):
    format: ExportFormat = ExportFormat.XLSX
    filters: ExportFilters = Field(default_factory=ExportFilters)
    columns: list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]] = Field(
        default_factory=list
    )

    def to_stored(self) -> dict:
        """Serialise for the JSON column (aliases on, unset date fields dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ExportCreateRequest(BaseModel):
    export_type: ExportType
    config: ExportConfig = Field(default_factory=ExportConfig)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ExportJobSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    export_type: ExportType
    status: ExportJobStatus
    created_at: datetime
    expires_at: datetime
    warning: str | None = None


class ExportJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    requested_by: str
    export_type: ExportType
    status: ExportJobStatus
    config: dict = Field(default_factory=dict)
    file_name: str | None = None
    file_size: int | None = None
    total_records: int | None = None
    error_message: str | None = None
    download_url: str | None = None
    created_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None


class ExportJobListResponse(BaseModel):
    items: list[ExportJobResponse]
    meta: PaginationMeta


class ExportStatsResponse(BaseModel):
    pending: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class CleanupResponse(BaseModel):
    interrupted_jobs: int
    expired_files: int
    old_records: int
    orphaned_files: int
    duration_ms: int


class CleanupQueuedResponse(BaseModel):
    task_id: str
    message: str


class StorageFilesResponse(BaseModel):
    total_count: int
    total_size_bytes: int
    total_size_formatted: str


class StorageStatsResponse(BaseModel):
    files: StorageFilesResponse
    database: ExportStatsResponse


class MessageResponse(BaseModel):
    message: str
