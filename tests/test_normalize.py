from datetime import datetime, timezone

import pytest

from quotalens.utils.normalize import (
    clamp,
    clamp_fraction,
    clamp_percent,
    first_present,
    normalize_boolean_value,
    normalize_number_value,
    normalize_plan_type,
    normalize_quota_fraction,
    normalize_string_value,
    parse_iso_datetime,
    parse_iso_timestamp,
    parse_json_payload,
)


class TestClamp:
    @pytest.mark.parametrize("value, expected", [(-5, 0), (0, 0), (42.5, 42.5), (100, 100), (250, 100)])
    def test_clamp_percent(self, value, expected):
        assert clamp_percent(value) == expected

    @pytest.mark.parametrize("value, expected", [(-0.1, 0.0), (0.5, 0.5), (1.7, 1.0)])
    def test_clamp_fraction(self, value, expected):
        assert clamp_fraction(value) == expected

    def test_unknown_stays_unknown(self):
        assert clamp_percent(None) is None
        assert clamp_fraction(None) is None

    def test_generic_bounds(self):
        assert clamp(5, 1, 3) == 3
        assert clamp(2, 1, 3) == 2


class TestScalarNormalizers:
    def test_string_values(self):
        assert normalize_string_value("  pro  ") == "pro"
        assert normalize_string_value("   ") is None
        assert normalize_string_value(7) == "7"
        assert normalize_string_value(True) is None
        assert normalize_string_value(None) is None

    def test_number_values(self):
        assert normalize_number_value("12.5") == 12.5
        assert normalize_number_value(3) == 3.0
        assert normalize_number_value("abc") is None
        assert normalize_number_value(False) is None
        assert normalize_number_value(float("nan")) is None

    def test_zero_is_not_unknown(self):
        assert normalize_number_value(0) == 0.0
        assert normalize_number_value("0") == 0.0

    def test_boolean_values(self):
        assert normalize_boolean_value("TRUE") is True
        assert normalize_boolean_value("no") is False
        assert normalize_boolean_value(1) is True
        assert normalize_boolean_value("maybe") is None

    def test_quota_fraction(self):
        assert normalize_quota_fraction(0.25) == 0.25
        assert normalize_quota_fraction("42%") == pytest.approx(0.42)
        assert normalize_quota_fraction(1.5) == 1.0
        assert normalize_quota_fraction(None) is None

    def test_plan_type_is_lowercased(self):
        assert normalize_plan_type(" Plus ") == "plus"
        assert normalize_plan_type("") is None


class TestFirstPresent:
    def test_first_non_none_alias_wins(self):
        source = {"remaining_fraction": None, "remainingFraction": 0.3, "remaining": 0.9}
        assert first_present(source, "remaining_fraction", "remainingFraction", "remaining") == 0.3

    def test_normalizer_applies_to_first_present_only(self):
        source = {"a": "not a number", "b": 5}
        assert first_present(source, "a", "b", normalizer=normalize_number_value) is None

    def test_missing_source(self):
        assert first_present(None, "a") is None
        assert first_present({}, "a") is None


class TestParsing:
    def test_json_payload(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}
        assert parse_json_payload(b'{"a": 1}') == {"a": 1}
        assert parse_json_payload({"a": 1}) == {"a": 1}
        assert parse_json_payload("[1, 2]") is None
        assert parse_json_payload("not json") is None
        assert parse_json_payload("") is None

    def test_iso_datetime(self):
        parsed = parse_iso_datetime("2025-01-02T03:04:05Z")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        assert parse_iso_timestamp("2025-01-01T00:00:00") == 1735689600

    def test_invalid_iso(self):
        assert parse_iso_timestamp("next tuesday") is None
        assert parse_iso_timestamp(12345) is None
