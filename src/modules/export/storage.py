"""Export directory statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_UNITS = ("B", "KB", "MB", "GB")


@dataclass
class StorageStats:
    total_count: int
    total_size_bytes: int
    total_size_formatted: str


def format_file_size(size: int) -> str:
    """Human-readable size with one decimal place, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 B"
    value = float(size)
    for unit in _UNITS:
        if value < 1024 or unit == _UNITS[-1]:
            return f"{value:.1f} {unit}"
        value /= 1024
    raise AssertionError("unreachable")


def get_storage_stats(export_dir: Path) -> StorageStats:
    """Count files directly under ``export_dir`` and sum their sizes."""
    export_dir = Path(export_dir)
    count = 0
    total = 0
    if export_dir.is_dir():
        for entry in export_dir.iterdir():
            try:
                if entry.is_file():
                    total += entry.stat().st_size
                    count += 1
            except FileNotFoundError:
                continue
    else:
        logger.debug("Export directory %s does not exist", export_dir)

    return StorageStats(
        total_count=count,
        total_size_bytes=total,
        total_size_formatted=format_file_size(total),
    )
