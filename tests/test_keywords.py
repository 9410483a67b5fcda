"""
Tests for keyword decoding
"""

import pytest

from serverpresence.keywords import apply_keywords, decode_keywords
from serverpresence.models import ServerInfo


class TestDecodeKeywords:
    """Test queue and time extraction"""

    def test_queue_and_time(self):
        assert decode_keywords("lqs3,08:45,foo") == ("3", "08:45")

    def test_empty_keywords(self):
        assert decode_keywords("") == ("", "")

    def test_unmatched_tokens(self):
        assert decode_keywords("battleye,no3rdperson,privHive") == ("", "")

    def test_zero_queue_is_kept_distinct_from_missing(self):
        queue, _ = decode_keywords("lqs0")
        assert queue == "0"

    def test_queue_value_is_not_validated(self):
        queue, _ = decode_keywords("lqsabc")
        assert queue == "abc"

    def test_queue_marker_only_stripped_as_prefix(self):
        queue, _ = decode_keywords("xlqs3")
        assert queue == "xlqs3"

    def test_last_time_token_wins(self):
        _, time = decode_keywords("07:00,lqs1,22:15")
        assert time == "22:15"

    def test_time_is_verbatim(self):
        _, time = decode_keywords("battleye, 08:45")
        assert time == " 08:45"

    @pytest.mark.parametrize("keywords,expected", [
        ("lqs5", ("5", "")),
        ("12:00", ("", "12:00")),
        ("battleye,external,lqs12,etm4.000000,entm2.000000,19:31", ("12", "19:31")),
    ])
    def test_dayz_style_keywords(self, keywords, expected):
        assert decode_keywords(keywords) == expected


class TestApplyKeywords:
    """Test enrichment of a decoded record"""

    def test_fills_derived_fields(self):
        info = ServerInfo(players=10, keywords="lqs2,20:05")
        result = apply_keywords(info)

        assert result is info
        assert info.queue == "2"
        assert info.time == "20:05"
        assert info.snapshot == (10, "2", "20:05")

    def test_missing_keywords_reset_derived_fields(self):
        info = ServerInfo(queue="stale", time="stale")
        apply_keywords(info)

        assert info.queue == ""
        assert info.time == ""
