"""
Time block parsing and validation.
Every write path (day edits, template patterns) goes through validate_blocks.
"""

import re
from typing import Iterable, Optional

from app.core.errors import ScheduleValidationError

from .types import TimeBlock


HHMM_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$")

# legacy payloads use startTime/endTime or start_time/end_time
_START_KEYS = ("start", "startTime", "start_time")
_END_KEYS = ("end", "endTime", "end_time")


def is_valid_hhmm(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(HHMM_RE.match(value))


def times_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open overlap check in minutes; touching blocks do not overlap."""
    return start1 < end2 and start2 < end1


def _pick(raw: dict, keys: tuple) -> Optional[str]:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def block_from_raw(raw) -> TimeBlock:
    """Build a TimeBlock from a dict or an existing TimeBlock."""
    if isinstance(raw, TimeBlock):
        return raw
    if not isinstance(raw, dict):
        raise ScheduleValidationError(f"Time block must be an object, got {type(raw).__name__}")
    start = _pick(raw, _START_KEYS)
    end = _pick(raw, _END_KEYS)
    for value in (start, end):
        if not is_valid_hhmm(value):
            raise ScheduleValidationError(f"Invalid time {value!r}, expected HH:MM")
    if start == "24:00":
        raise ScheduleValidationError("A block cannot start at 24:00")
    return TimeBlock(start=start, end=end)


def validate_blocks(raw_blocks: Iterable) -> list[TimeBlock]:
    """
    Parse, check and sort a day's blocks.

    Rejects blocks with start >= end, blocks crossing midnight and
    overlapping blocks. Returns the blocks sorted by start time.
    """
    blocks = [block_from_raw(b) for b in raw_blocks or []]

    for block in blocks:
        if block.end_minutes < block.start_minutes:
            raise ScheduleValidationError(
                f"Block {block.start}-{block.end} crosses midnight, split it across two days"
            )
        if block.start_minutes >= block.end_minutes:
            raise ScheduleValidationError(f"Block {block.start}-{block.end}: end time must be after start time")

    blocks.sort(key=lambda b: (b.start_minutes, b.end_minutes))
    for prev, curr in zip(blocks, blocks[1:]):
        if times_overlap(prev.start_minutes, prev.end_minutes, curr.start_minutes, curr.end_minutes):
            raise ScheduleValidationError(
                f"Blocks {prev.start}-{prev.end} and {curr.start}-{curr.end} overlap"
            )
    return blocks


def validate_day(is_working: bool, raw_blocks: Iterable) -> list[TimeBlock]:
    """Blocks for a day write. A non-working day never keeps blocks."""
    blocks = validate_blocks(raw_blocks)
    if not is_working:
        return []
    return blocks


def validate_pattern(pattern: dict) -> dict:
    """
    Validate a weekly template pattern and return its stored form:
    {"0": {"isWorking": bool, "timeBlocks": [{"start", "end"}]}, ...} with 0 = Monday.
    """
    stored = {}
    for key, day in (pattern or {}).items():
        try:
            weekday = int(key)
        except (TypeError, ValueError):
            raise ScheduleValidationError(f"Invalid weekday key {key!r}")
        if weekday < 0 or weekday > 6:
            raise ScheduleValidationError(f"Weekday must be 0-6, got {weekday}")
        if not isinstance(day, dict):
            raise ScheduleValidationError(f"Pattern for weekday {weekday} must be an object")
        is_working = bool(day.get("isWorking", day.get("is_working", False)))
        raw_blocks = day.get("timeBlocks", day.get("time_blocks", []))
        try:
            blocks = validate_day(is_working, raw_blocks)
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"Weekday {weekday}: {e.message}")
        stored[str(weekday)] = {
            "isWorking": is_working,
            "timeBlocks": [b.to_dict() for b in blocks],
        }
    return stored


def blocks_to_dicts(blocks: Iterable[TimeBlock]) -> list[dict]:
    return [b.to_dict() for b in blocks]
