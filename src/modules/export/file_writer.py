"""Tabular file output (CSV / XLSX) for export jobs."""

from __future__ import annotations

import csv
import enum
import logging
import uuid
from datetime import UTC, date, datetime
from pathlib import Path

from openpyxl import Workbook

from src.models.enums import ExportFormat, ExportType
from src.modules.export.constants import EMPTY_EXPORT_PLACEHOLDER
from src.modules.export.date_rules import isoformat_z

logger = logging.getLogger(__name__)

# Excel caps worksheet titles at 31 characters
_MAX_SHEET_TITLE = 31


def build_file_name(
    export_type: ExportType,
    job_id: uuid.UUID | str,
    fmt: ExportFormat,
    now: datetime,
) -> str:
    """``{export_type}_{job_id}_{timestamp}.{format}`` with a filesystem-safe timestamp."""
    stamp = isoformat_z(now).replace(":", "-").replace(".", "-")
    return f"{ExportType(export_type).value}_{job_id}_{stamp}.{ExportFormat(fmt).value}"


def _csv_value(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        return isoformat_z(value) if value.tzinfo else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _xlsx_value(value):
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _write_csv(path: Path, rows: list[dict]) -> None:
    if not rows:
        path.write_text(EMPTY_EXPORT_PLACEHOLDER, encoding="utf-8")
        return

    fieldnames = list(rows[0].keys())
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames, extrasaction="ignore", restval="")
        writer.writeheader()
        for row in rows:
            writer.writerow({key: _csv_value(row.get(key)) for key in fieldnames})


def _write_xlsx(path: Path, rows: list[dict], sheet_title: str) -> None:
    workbook = Workbook(write_only=True)
    sheet = workbook.create_sheet(title=sheet_title[:_MAX_SHEET_TITLE])

    if not rows:
        sheet.append([EMPTY_EXPORT_PLACEHOLDER])
    else:
        header = list(rows[0].keys())
        sheet.append(header)
        for row in rows:
            sheet.append([_xlsx_value(row.get(key)) for key in header])

    workbook.save(path)


def write_tabular(
    path: str | Path,
    rows: list[dict],
    fmt: ExportFormat | str,
    sheet_title: str = "Export",
) -> int:
    """Write ``rows`` to ``path`` in the given format and return the file size.

    The column order is taken from the first row. An empty ``rows`` list
    produces a placeholder file rather than an empty one.

    Raises:
        ValueError: for an unsupported format (before anything is written).
    """
    try:
        fmt = ExportFormat(fmt)
    except ValueError as exc:
        raise ValueError(f"Unsupported export format: {fmt}") from exc

    path = Path(path)
    if fmt == ExportFormat.CSV:
        _write_csv(path, rows)
    else:
        _write_xlsx(path, rows, sheet_title)

    size = path.stat().st_size
    logger.debug("Wrote %d rows to %s (%d bytes)", len(rows), path.name, size)
    return size
