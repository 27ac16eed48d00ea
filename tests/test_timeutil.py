"""Tests for nagger.core.timeutil — reminder time matching."""

from zoneinfo import ZoneInfo

import pytest

from nagger.core.timeutil import (
    format_hhmm,
    is_reminder_due,
    is_valid_reminder_time,
    is_valid_timezone,
    normalize_reminder_time,
    resolve_timezone,
)

from conftest import utc

UTC = ZoneInfo("UTC")


class TestIsValidReminderTime:
    @pytest.mark.parametrize("value", ["00:00", "09:00", "14:30", "23:59"])
    def test_valid(self, value):
        assert is_valid_reminder_time(value) is True

    @pytest.mark.parametrize("value", ["9:00", "24:00", "23:60", "0900", "ab:cd", "", "09:00:00"])
    def test_invalid(self, value):
        assert is_valid_reminder_time(value) is False


class TestNormalizeReminderTime:
    def test_pads_hour(self):
        assert normalize_reminder_time("9:05") == "09:05"

    def test_strips_whitespace(self):
        assert normalize_reminder_time(" 14:30 ") == "14:30"

    @pytest.mark.parametrize("value", ["25:00", "12:60", "12", "12:5", "a:bc", "-1:30"])
    def test_rejects(self, value):
        with pytest.raises(ValueError):
            normalize_reminder_time(value)


class TestResolveTimezone:
    def test_known_zone(self):
        assert resolve_timezone("America/New_York") == ZoneInfo("America/New_York")
        assert is_valid_timezone("Europe/London") is True

    @pytest.mark.parametrize("name", ["", "Not/AZone", "../etc/passwd"])
    def test_unknown_zone(self, name):
        assert resolve_timezone(name) is None
        assert is_valid_timezone(name) is False


class TestIsReminderDue:
    def test_exact_minute_matches(self):
        assert is_reminder_due("09:00", "UTC", UTC, utc(9, 0)) is True

    @pytest.mark.parametrize("hour,minute", [(9, 1), (8, 59)])
    def test_neighbouring_minutes_do_not_match(self, hour, minute):
        assert is_reminder_due("09:00", "UTC", UTC, utc(hour, minute)) is False

    def test_evaluated_in_chat_timezone(self):
        # 14:00 UTC is 09:00 in New York in January (EST, UTC-5).
        assert is_reminder_due("09:00", "America/New_York", UTC, utc(14, 0)) is True
        assert is_reminder_due("09:00", "America/New_York", UTC, utc(9, 0)) is False

    def test_bad_timezone_falls_back_to_default(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        # 00:00 UTC is 09:00 in Tokyo.
        assert is_reminder_due("09:00", "Bogus/Zone", tokyo, utc(0, 0)) is True

    def test_format_hhmm(self):
        assert format_hhmm(utc(7, 5), UTC) == "07:05"
