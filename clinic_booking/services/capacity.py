# clinic_booking/services/capacity.py
"""Per-block usage and the capacity test every booking path shares."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from clinic_booking.core.logging import get_logger
from clinic_booking.core.timeslots import SLOT_MINUTES, covered_blocks, format_clock, parse_time_slot

logger = get_logger(__name__)


def accumulate_usage(time_slots: Iterable[Optional[str]], stride: int = SLOT_MINUTES) -> Counter:
    """
    Expand each "HH:MM-HH:MM" into its blocks and count bookings per block.

    A slot that cannot be parsed is logged and skipped, so one bad row never
    blocks capacity checks for the whole day.
    """
    usage: Counter = Counter()
    for slot in time_slots:
        try:
            start, end = parse_time_slot(slot)
        except ValueError:
            logger.warning("time_slot_unparseable", time_slot=slot)
            continue
        for block in covered_blocks(start, end, stride):
            usage[block] += 1
    return usage


def peak_usage(usage: Counter) -> int:
    return max(usage.values(), default=0)


@dataclass(frozen=True)
class CapacityCheck:
    ok: bool
    full_at: Optional[int] = None

    @property
    def full_at_label(self) -> Optional[str]:
        return None if self.full_at is None else format_clock(self.full_at)


def check_capacity(
    start: int,
    blocks_needed: int,
    usage: Counter,
    capacity: int,
    grid: Sequence[int],
    stride: int = SLOT_MINUTES,
) -> CapacityCheck:
    """ok iff every covered block is on the grid and still below capacity."""
    on_grid = set(grid)
    for i in range(max(1, blocks_needed)):
        block = start + i * stride
        if block not in on_grid or usage.get(block, 0) >= capacity:
            return CapacityCheck(ok=False, full_at=block)
    return CapacityCheck(ok=True)


def available_starts(
    grid: Sequence[int],
    blocks_needed: int,
    usage: Counter,
    capacity: int,
    stride: int = SLOT_MINUTES,
) -> list[int]:
    return [
        start for start in grid
        if check_capacity(start, blocks_needed, usage, capacity, grid, stride).ok
    ]
