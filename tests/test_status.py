"""
Tests for day/night classification and status formatting
"""

import pytest

from serverpresence.exceptions import InvalidTimeFormatError
from serverpresence.models import DayPeriod, Emojis, ServerInfo, TimeFallback
from serverpresence.status import classify_time, format_status, is_day, resolve_period

EMOJIS = Emojis(human="H", day="D", night="N")


class TestClassifier:
    """Test the HH:MM classifier"""

    @pytest.mark.parametrize("value,expected", [
        ("05:59", False),
        ("06:00", True),
        ("12:30", True),
        ("19:59", True),
        ("20:00", False),
        ("00:00", False),
        ("23:59", False),
    ])
    def test_is_day_boundaries(self, value, expected):
        assert is_day(value) is expected

    def test_classify_returns_period(self):
        assert classify_time("08:45") == DayPeriod.DAY
        assert classify_time("21:10") == DayPeriod.NIGHT

    def test_hour_without_minutes(self):
        assert classify_time("7") == DayPeriod.DAY

    def test_signed_hour(self):
        assert classify_time("+07:00") == DayPeriod.DAY

    @pytest.mark.parametrize("value", ["ab:cd", ":30", "", "noon", " 08:45", "1_0:00", "٠٨:00"])
    def test_invalid_hour(self, value):
        with pytest.raises(InvalidTimeFormatError) as excinfo:
            classify_time(value)
        assert excinfo.value.value == value


class TestResolvePeriod:
    """Test the configurable fallback policy"""

    def test_valid_time_ignores_fallback(self):
        assert resolve_period("10:00", TimeFallback.HIDE) == DayPeriod.DAY

    @pytest.mark.parametrize("fallback,expected", [
        (TimeFallback.NIGHT, DayPeriod.NIGHT),
        (TimeFallback.DAY, DayPeriod.DAY),
        (TimeFallback.HIDE, None),
    ])
    def test_invalid_time_uses_fallback(self, fallback, expected):
        assert resolve_period("xx:30", fallback) == expected

    def test_empty_time_has_no_period(self):
        assert resolve_period("", TimeFallback.NIGHT) is None


class TestFormatStatus:
    """Test the presence text layout"""

    def test_players_only(self):
        info = ServerInfo(players=3, max_players=60)
        assert format_status(info, None, EMOJIS) == " H 3/60"

    def test_queue_and_day(self):
        info = ServerInfo(players=60, max_players=60, queue="4", time="08:45")
        assert format_status(info, DayPeriod.DAY, EMOJIS) == " H 60/60 (+4) | D 08:45"

    def test_zero_queue_is_hidden(self):
        info = ServerInfo(players=5, max_players=60, queue="0", time="22:00")
        assert format_status(info, DayPeriod.NIGHT, EMOJIS) == " H 5/60 | N 22:00"

    def test_time_without_queue(self):
        info = ServerInfo(players=0, max_players=40, time="05:00")
        assert format_status(info, DayPeriod.NIGHT, EMOJIS) == " H 0/40 | N 05:00"

    def test_hidden_period_drops_time_segment(self):
        info = ServerInfo(players=1, max_players=40, queue="2", time="xx:00")
        assert format_status(info, None, EMOJIS) == " H 1/40 (+2)"

    def test_default_emojis(self):
        info = ServerInfo(players=1, max_players=2, time="12:00")
        assert format_status(info, DayPeriod.DAY, Emojis()) == " 👤 1/2 | ☀️ 12:00"
