"""
Clock and block arithmetic.
"""
import os
import sys
from datetime import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from clinic_booking.core.timeslots import (
    blocks_needed,
    build_blocks,
    covered_blocks,
    format_clock,
    format_time_slot,
    normalize_clock,
    parse_clock,
    parse_time_slot,
)


@pytest.mark.unit
class TestParseClock:

    @pytest.mark.parametrize("raw,expected", [
        ("08:00", 480),
        ("8:30", 510),
        ("08:00:00", 480),
        ("23:59", 1439),
        (time(9, 15), 555),
        (600, 600),
    ])
    def test_accepts_supported_shapes(self, raw, expected):
        assert parse_clock(raw) == expected

    @pytest.mark.parametrize("raw", ["24:00", "08:60", "8", "", "ab:cd", True, 1440, -1])
    def test_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            parse_clock(raw)

    def test_seconds_are_normalized_away(self):
        assert normalize_clock("08:00:00") == "08:00"
        assert format_clock(parse_clock("17:00:59")) == "17:00"


@pytest.mark.unit
class TestTimeSlots:

    def test_parse_slot(self):
        assert parse_time_slot("08:00-09:30") == (480, 570)
        assert parse_time_slot("08:00:00-09:00:00") == (480, 540)

    @pytest.mark.parametrize("raw", [None, "", "08:00", "xx-yy", "08:00-25:00"])
    def test_parse_slot_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_time_slot(raw)

    def test_format_slot_end_is_start_plus_duration(self):
        assert format_time_slot(480, 480 + 45) == "08:00-08:45"


@pytest.mark.unit
class TestBlocks:

    def test_grid_is_open_inclusive_close_exclusive(self):
        assert build_blocks("08:00", "10:00") == [480, 510, 540, 570]

    def test_grid_is_deterministic(self):
        assert build_blocks("08:00", "17:00") == build_blocks(time(8, 0), time(17, 0))
        assert len(build_blocks("08:00", "17:00")) == 18
        assert [format_clock(b) for b in build_blocks("16:00", "17:00")] == ["16:00", "16:30"]

    def test_grid_empty_when_inverted_or_zero_length(self):
        assert build_blocks("17:00", "08:00") == []
        assert build_blocks("08:00", "08:00") == []

    def test_unaligned_close_still_starts_last_block_before_close(self):
        assert build_blocks("08:00", "09:15") == [480, 510, 540]

    def test_covered_blocks_for_45_minute_service(self):
        # 08:00-08:45 touches the 08:00 and 08:30 blocks
        assert covered_blocks(480, 525) == [480, 510]

    def test_covered_blocks_empty_for_non_positive_span(self):
        assert covered_blocks(480, 480) == []
        assert covered_blocks(540, 480) == []

    @pytest.mark.parametrize("minutes,expected", [
        (None, 1), (0, 1), (15, 1), (30, 1), (31, 2), (45, 2), (60, 2), (90, 3),
    ])
    def test_blocks_needed(self, minutes, expected):
        assert blocks_needed(minutes) == expected
