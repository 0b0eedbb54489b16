# clinic_booking/core/timeslots.py
"""
Clock and block arithmetic.

Times travel through the engine as minute-of-day integers; the "HH:MM" and
"HH:MM-HH:MM" strings only exist at the API and database boundary.
"""
from __future__ import annotations

import math
import re
from datetime import time
from typing import Union

SLOT_MINUTES = 30

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

ClockLike = Union[str, time, int]


def parse_clock(value: ClockLike) -> int:
    """Accept "HH:MM", "HH:MM:SS", datetime.time or minutes; return minute of day."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time: {value!r}")
    if isinstance(value, int):
        if not 0 <= value < 24 * 60:
            raise ValueError(f"Invalid time: {value!r}")
        return value
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    match = _CLOCK_RE.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"Invalid time: {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def normalize_clock(value: ClockLike) -> str:
    """'08:00:00' -> '08:00'."""
    return format_clock(parse_clock(value))


def parse_time_slot(slot: str | None) -> tuple[int, int]:
    """'08:00-09:30' (seconds tolerated on either side) -> (480, 570)."""
    if not slot or "-" not in slot:
        raise ValueError(f"Invalid time slot: {slot!r}")
    start, end = slot.split("-", 1)
    return parse_clock(start), parse_clock(end)


def format_time_slot(start: int, end: int) -> str:
    return f"{format_clock(start)}-{format_clock(end)}"


def build_blocks(open_time: ClockLike, close_time: ClockLike, stride: int = SLOT_MINUTES) -> list[int]:
    """Block start times from open (inclusive) until close (exclusive)."""
    cursor, close = parse_clock(open_time), parse_clock(close_time)
    blocks = []
    while cursor < close:
        blocks.append(cursor)
        cursor += stride
    return blocks


def covered_blocks(start: int, end: int, stride: int = SLOT_MINUTES) -> list[int]:
    """Blocks b with start <= b < end, stepping from start."""
    return list(range(start, end, stride)) if end > start else []


def blocks_needed(estimated_minutes: int | None, stride: int = SLOT_MINUTES) -> int:
    return max(1, math.ceil((estimated_minutes or 0) / stride))
