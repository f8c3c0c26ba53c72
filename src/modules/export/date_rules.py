"""Date-range business rules for export filters.

Shared by submission (so bad ranges are rejected synchronously) and by the
worker (which re-applies them before generating, failing the job rather than
correcting the range).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from src.exceptions import ValidationException
from src.models.enums import ExportPeriod
from src.modules.export.constants import MAX_DATE_RANGE_DAYS, MAX_LOOKBACK_YEARS, PERIOD_DAYS
from src.modules.export.schemas import DateRange, ExportConfig


@dataclass(frozen=True)
class DateWindow:
    """A validated, parsed date range bound to a concrete model column."""

    start: datetime
    end: datetime
    column: str


def isoformat_z(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str, label: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationException(
            f"Invalid {label} date: {value!r}",
            details=[{"field": f"filters.date_range.{label}", "message": "Not a valid ISO 8601 date"}],
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def years_ago(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


def _has_bounds(date_range: DateRange | None) -> bool:
    return date_range is not None and (
        date_range.from_ is not None or date_range.to is not None or date_range.period is not None
    )


def resolve_period(date_range: DateRange, now: datetime) -> DateRange:
    """Turn a predefined period into concrete ``from``/``to`` values.

    A period of N days starts at midnight UTC N-1 days ago and ends now.
    Custom periods must already carry both bounds. A range that already has
    both bounds (a period resolved at submission) is returned unchanged.
    """
    if date_range.period is None or (date_range.from_ and date_range.to):
        return date_range
    if date_range.period == ExportPeriod.CUSTOM:
        if not date_range.from_ or not date_range.to:
            raise ValidationException("Custom period requires both from and to dates")
        return date_range

    days = PERIOD_DAYS[date_range.period]
    start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    # Exactly at midnight "today" would be empty; keep at least one millisecond
    start = min(start, now - timedelta(milliseconds=1))
    return date_range.model_copy(update={"from_": isoformat_z(start), "to": isoformat_z(now)})


def apply_defaults(
    config: ExportConfig,
    now: datetime,
    default_window_days: int | None,
) -> tuple[ExportConfig, bool]:
    """Return the effective config and whether a default window was applied.

    Without a date range the dataset's default window ``[now - N days, now]``
    is used (when the dataset declares one); predefined periods are resolved.
    The input config is never mutated.
    """
    date_range = config.filters.date_range

    if not _has_bounds(date_range):
        if default_window_days is None:
            return config, False
        window = DateRange(
            from_=isoformat_z(now - timedelta(days=default_window_days)),
            to=isoformat_z(now),
            field=date_range.field if date_range else None,
        )
        filters = config.filters.model_copy(update={"date_range": window})
        return config.model_copy(update={"filters": filters}), True

    resolved = resolve_period(date_range, now)
    if resolved is date_range:
        return config, False
    filters = config.filters.model_copy(update={"date_range": resolved})
    return config.model_copy(update={"filters": filters}), False


def validate_date_range(
    date_range: DateRange,
    now: datetime,
    date_fields: Mapping[str, str],
) -> DateWindow:
    """Check a resolved date range and bind it to a model column.

    Rules: both bounds present and parseable, ``from < to``, ``from`` at most
    two years back, ``to`` not in the future, span of at most 365 days.
    Every violated rule is reported in ``details``.
    """
    if not date_fields:
        raise ValidationException("This export type does not support date filtering")

    field = date_range.field or next(iter(date_fields))
    if field not in date_fields:
        raise ValidationException(
            f"Invalid date field '{field}'. Allowed fields: {', '.join(date_fields)}",
            details=[{"field": "filters.date_range.field", "message": "Unsupported date field"}],
        )

    if not date_range.from_ or not date_range.to:
        raise ValidationException(
            "Both from and to dates are required",
            details=[{"field": "filters.date_range", "message": "Both from and to dates are required"}],
        )

    start = parse_timestamp(date_range.from_, "from")
    end = parse_timestamp(date_range.to, "to")

    errors: list[dict] = []
    if start >= end:
        errors.append({"field": "filters.date_range.to", "message": "From date must be before to date"})
    if start < years_ago(now, MAX_LOOKBACK_YEARS):
        errors.append(
            {
                "field": "filters.date_range.from",
                "message": f"From date cannot be more than {MAX_LOOKBACK_YEARS} years ago",
            }
        )
    if end > now:
        errors.append({"field": "filters.date_range.to", "message": "To date cannot be in the future"})
    if end - start > timedelta(days=MAX_DATE_RANGE_DAYS):
        errors.append(
            {
                "field": "filters.date_range",
                "message": f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days",
            }
        )

    if errors:
        raise ValidationException(
            "Invalid date range: " + "; ".join(e["message"] for e in errors),
            details=errors,
        )

    return DateWindow(start=start, end=end, column=date_fields[field])
