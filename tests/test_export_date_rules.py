"""Tests for export date-range defaulting and validation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.exceptions import ValidationException
from src.models.enums import ExportPeriod
from src.modules.export.date_rules import (
    apply_defaults,
    isoformat_z,
    parse_timestamp,
    resolve_period,
    validate_date_range,
    years_ago,
)
from src.modules.export.schemas import DateRange, ExportConfig, ExportFilters

NOW = datetime(2026, 3, 15, 12, 30, tzinfo=UTC)

ASSET_FIELDS = {
    "created_at": "created_at",
    "updated_at": "last_update",
    "last_update": "last_update",
    "deactivated_at": "deactivated_at",
}


def _config(date_range: DateRange | None = None) -> ExportConfig:
    return ExportConfig(filters=ExportFilters(date_range=date_range))


class TestTimestamps:
    def test_isoformat_z_has_milliseconds_and_z_suffix(self):
        assert isoformat_z(NOW) == "2026-03-15T12:30:00.000Z"

    def test_parse_naive_value_is_utc(self):
        assert parse_timestamp("2026-03-01", "from") == datetime(2026, 3, 1, tzinfo=UTC)

    def test_parse_offset_value_is_converted_to_utc(self):
        parsed = parse_timestamp("2026-03-01T07:00:00+07:00", "from")
        assert parsed == datetime(2026, 3, 1, 0, 0, tzinfo=UTC)

    def test_parse_garbage_raises_validation(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_timestamp("yesterday", "to")
        assert exc_info.value.details[0]["field"] == "filters.date_range.to"

    def test_years_ago_on_leap_day(self):
        leap = datetime(2028, 2, 29, tzinfo=UTC)
        assert years_ago(leap, 2) == datetime(2026, 2, 28, tzinfo=UTC)


class TestApplyDefaults:
    def test_missing_range_gets_default_window(self):
        effective, applied = apply_defaults(_config(), NOW, 30)

        assert applied is True
        date_range = effective.filters.date_range
        assert date_range.from_ == isoformat_z(NOW - timedelta(days=30))
        assert date_range.to == isoformat_z(NOW)

    def test_input_config_is_not_mutated(self):
        config = _config()
        apply_defaults(config, NOW, 30)
        assert config.filters.date_range is None

    def test_no_default_for_dataset_without_window(self):
        config = _config()
        effective, applied = apply_defaults(config, NOW, None)
        assert applied is False
        assert effective is config

    def test_field_only_range_keeps_field(self):
        effective, applied = apply_defaults(_config(DateRange(field="deactivated_at")), NOW, 30)
        assert applied is True
        assert effective.filters.date_range.field == "deactivated_at"

    def test_explicit_range_is_left_alone(self):
        config = _config(DateRange(from_="2026-03-01", to="2026-03-10"))
        effective, applied = apply_defaults(config, NOW, 30)
        assert applied is False
        assert effective is config

    def test_stored_config_round_trips(self):
        effective, _ = apply_defaults(_config(), NOW, 30)
        stored = effective.to_stored()

        assert stored["filters"]["date_range"]["from"] == isoformat_z(NOW - timedelta(days=30))
        reloaded, applied = apply_defaults(ExportConfig.model_validate(stored), NOW, 30)
        assert applied is False
        assert reloaded.to_stored() == stored


class TestResolvePeriod:
    def test_last_7_days_starts_at_midnight_six_days_ago(self):
        resolved = resolve_period(DateRange(period=ExportPeriod.LAST_7_DAYS), NOW)
        assert resolved.from_ == "2026-03-09T00:00:00.000Z"
        assert resolved.to == isoformat_z(NOW)

    def test_today_starts_at_midnight(self):
        resolved = resolve_period(DateRange(period=ExportPeriod.TODAY), NOW)
        assert resolved.from_ == "2026-03-15T00:00:00.000Z"

    def test_today_at_midnight_is_still_a_valid_range(self):
        midnight = datetime(2026, 3, 15, tzinfo=UTC)

        resolved = resolve_period(DateRange(period=ExportPeriod.TODAY), midnight)
        window = validate_date_range(resolved, midnight, ASSET_FIELDS)

        assert resolved.to == "2026-03-15T00:00:00.000Z"
        assert resolved.from_ == "2026-03-14T23:59:59.999Z"
        assert window.start < window.end

    def test_resolved_period_is_not_resolved_again(self):
        first = resolve_period(DateRange(period=ExportPeriod.LAST_30_DAYS), NOW)
        later = resolve_period(first, NOW + timedelta(hours=5))
        assert later is first

    def test_custom_period_requires_bounds(self):
        with pytest.raises(ValidationException):
            resolve_period(DateRange(period=ExportPeriod.CUSTOM, from_="2026-03-01"), NOW)


class TestValidateDateRange:
    def test_valid_range_binds_default_column(self):
        window = validate_date_range(
            DateRange(from_="2026-03-01", to="2026-03-10"), NOW, ASSET_FIELDS
        )
        assert window.column == "created_at"
        assert window.start == datetime(2026, 3, 1, tzinfo=UTC)
        assert window.end == datetime(2026, 3, 10, tzinfo=UTC)

    def test_updated_at_maps_to_last_update(self):
        window = validate_date_range(
            DateRange(from_="2026-03-01", to="2026-03-10", field="updated_at"), NOW, ASSET_FIELDS
        )
        assert window.column == "last_update"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationException, match="Invalid date field"):
            validate_date_range(
                DateRange(from_="2026-03-01", to="2026-03-10", field="scanned_at"), NOW, ASSET_FIELDS
            )

    def test_missing_bound_rejected(self):
        with pytest.raises(ValidationException, match="Both from and to"):
            validate_date_range(DateRange(from_="2026-03-01"), NOW, ASSET_FIELDS)

    def test_from_not_before_to(self):
        with pytest.raises(ValidationException, match="before"):
            validate_date_range(DateRange(from_="2026-03-10", to="2026-03-10"), NOW, ASSET_FIELDS)

    def test_from_more_than_two_years_ago(self):
        with pytest.raises(ValidationException, match="2 years"):
            validate_date_range(DateRange(from_="2024-03-01", to="2024-12-01"), NOW, ASSET_FIELDS)

    def test_to_in_the_future(self):
        with pytest.raises(ValidationException, match="future"):
            validate_date_range(DateRange(from_="2026-03-01", to="2026-04-01"), NOW, ASSET_FIELDS)

    def test_span_over_365_days(self):
        with pytest.raises(ValidationException, match="365 days"):
            validate_date_range(DateRange(from_="2025-01-01", to="2026-03-01"), NOW, ASSET_FIELDS)

    def test_every_violation_is_reported(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_date_range(DateRange(from_="2026-05-01", to="2026-04-01"), NOW, ASSET_FIELDS)

        messages = [d["message"] for d in exc_info.value.details]
        assert "From date must be before to date" in messages
        assert "To date cannot be in the future" in messages
