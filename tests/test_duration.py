"""Tests for aggregation period parsing."""

from datetime import timedelta

import pytest

from aggregator.duration import InvalidDuration, format_duration, parse_duration


def _ms(value: timedelta) -> int:
    return round(value.total_seconds() * 1000)


class TestParseDuration:
    def test_hours_and_minutes(self):
        assert _ms(parse_duration("1h30m")) == 5_400_000

    def test_milliseconds(self):
        assert _ms(parse_duration("3500ms")) == 3500

    def test_seconds(self):
        assert parse_duration("45s") == timedelta(seconds=45)

    def test_all_units(self):
        assert parse_duration("1h2m3s4ms") == timedelta(hours=1, minutes=2, seconds=3, milliseconds=4)

    def test_spaces_between_components(self):
        assert parse_duration("1h 30m 15s") == timedelta(hours=1, minutes=30, seconds=15)

    def test_repeated_unit_adds_up(self):
        assert parse_duration("30s30s") == timedelta(minutes=1)

    @pytest.mark.parametrize("text", [
        "0s", "", "xyz", "   ", "0h0m", "-5s", "1.5s", "10", "5x", "s",
        "99999999999999h", "999999999h",
    ])
    def test_invalid(self, text):
        with pytest.raises(InvalidDuration):
            parse_duration(text)

    def test_too_large_is_invalid_not_overflow(self):
        with pytest.raises(InvalidDuration, match="too large"):
            parse_duration("99999999999999h")

    def test_long_period_still_valid(self):
        assert parse_duration("1000h") == timedelta(hours=1000)

    def test_invalid_is_value_error(self):
        with pytest.raises(ValueError):
            parse_duration("later")


class TestFormatDuration:
    def test_compound(self):
        assert format_duration(timedelta(hours=1, minutes=30)) == "1h30m"

    def test_sub_second(self):
        assert format_duration(timedelta(milliseconds=500)) == "500ms"

    def test_zero(self):
        assert format_duration(timedelta(0)) == "0s"
