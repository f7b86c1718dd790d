"""Fixed weekly grid: working days, lecture bands, lab bands and overlap arithmetic.

Bands are written as ``HH:MM-HH:MM`` in 24-hour form. Two schedules exist per
cohort year: ``Morning`` cohorts start at 08:10, ``Afternoon`` cohorts start
at 10:25 and run until 16:55.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DAYS: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

MORNING_LECTURE_BANDS: tuple[str, ...] = (
    "08:10-09:10",
    "09:10-10:10",
    "10:25-11:20",
    "11:20-12:15",
    "13:05-14:00",
    "14:00-14:55",
)
AFTERNOON_LECTURE_BANDS: tuple[str, ...] = (
    "10:25-11:20",
    "11:20-12:15",
    "13:05-14:00",
    "14:00-14:55",
    "15:05-16:00",
    "16:00-16:55",
)
MORNING_LAB_BANDS: tuple[str, ...] = ("08:10-10:10", "10:25-12:15", "13:05-14:55")
AFTERNOON_LAB_BANDS: tuple[str, ...] = ("10:25-12:15", "13:05-14:55", "15:05-16:55")

# Day-wide orderings used for adjacency checks.
ALL_LECTURE_BANDS: tuple[str, ...] = (
    "08:10-09:10",
    "09:10-10:10",
    "10:25-11:20",
    "11:20-12:15",
    "13:05-14:00",
    "14:00-14:55",
    "15:05-16:00",
    "16:00-16:55",
)
ALL_LAB_BANDS: tuple[str, ...] = ("08:10-10:10", "10:25-12:15", "13:05-14:55", "15:05-16:55")

LAB_BAND_HOURS = 2
LECTURE_BAND_HOURS = 1

DEFAULT_BAND_SETS = {"SE": "Morning", "TE": "Morning", "BE": "Afternoon"}


def parse_range(time_range: str) -> tuple[int, int]:
    """Parse ``"8:10-10:10"`` into ``(810, 1010)``.

    Raises ``ValueError`` when the string is not two ``H:MM`` parts.
    """
    parts = time_range.split("-")
    if len(parts) != 2:
        raise ValueError(f"Malformed time range: {time_range!r}")
    values = []
    for part in parts:
        hours, sep, minutes = part.strip().partition(":")
        if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
            raise ValueError(f"Malformed time range: {time_range!r}")
        values.append(int(hours) * 100 + int(minutes))
    return values[0], values[1]


def overlap(range_a: str, range_b: str) -> bool:
    """True when the two ranges share any time. Touching ends do not overlap.

    A range that cannot be parsed is treated as overlapping everything.
    """
    try:
        start_a, end_a = parse_range(range_a)
        start_b, end_b = parse_range(range_b)
    except ValueError:
        logger.warning("Unparseable time range in overlap check: %r vs %r", range_a, range_b)
        return True
    return max(start_a, start_b) < min(end_a, end_b)


def start_hour(time_range: str) -> int | None:
    try:
        start, _ = parse_range(time_range)
    except ValueError:
        return None
    return start // 100


def band_set_for(year: str, year_batch_type: dict[str, str] | None) -> str:
    if year_batch_type and year_batch_type.get(year):
        return year_batch_type[year]
    logger.warning(
        "No yearBatchType configured for %s; defaulting BE to Afternoon and others to Morning",
        year,
    )
    return DEFAULT_BAND_SETS.get(year, "Morning")


def lecture_bands_for(band_set: str) -> tuple[str, ...]:
    return MORNING_LECTURE_BANDS if band_set == "Morning" else AFTERNOON_LECTURE_BANDS


def lab_bands_for(band_set: str) -> tuple[str, ...]:
    return MORNING_LAB_BANDS if band_set == "Morning" else AFTERNOON_LAB_BANDS


def is_lab_band(time_range: str) -> bool:
    return time_range in ALL_LAB_BANDS


def is_lecture_band(time_range: str) -> bool:
    return time_range in ALL_LECTURE_BANDS


def band_duration(time_range: str) -> int:
    return LAB_BAND_HOURS if is_lab_band(time_range) else LECTURE_BAND_HOURS


def lecture_band_index(time_range: str) -> int:
    try:
        return ALL_LECTURE_BANDS.index(time_range)
    except ValueError:
        return -1


def adjacent_lecture_bands(time_range: str) -> tuple[str, ...]:
    index = lecture_band_index(time_range)
    if index == -1:
        return ()
    neighbours = []
    if index > 0:
        neighbours.append(ALL_LECTURE_BANDS[index - 1])
    if index < len(ALL_LECTURE_BANDS) - 1:
        neighbours.append(ALL_LECTURE_BANDS[index + 1])
    return tuple(neighbours)


def previous_band(time_range: str, ordering: tuple[str, ...]) -> str | None:
    try:
        index = ordering.index(time_range)
    except ValueError:
        return None
    if index == 0:
        return None
    return ordering[index - 1]


def adjacent_lab_bands(time_range: str) -> tuple[str, ...]:
    try:
        index = ALL_LAB_BANDS.index(time_range)
    except ValueError:
        return ()
    return tuple(
        ALL_LAB_BANDS[item]
        for item in (index - 1, index + 1)
        if 0 <= item < len(ALL_LAB_BANDS)
    )


def day_index(day: str) -> int:
    try:
        return DAYS.index(day)
    except ValueError:
        return len(DAYS)


def contains(outer: str, inner: str) -> bool:
    """True when ``inner`` lies entirely within ``outer``.

    Raises ``ValueError`` when either range is malformed.
    """
    outer_start, outer_end = parse_range(outer)
    inner_start, inner_end = parse_range(inner)
    return outer_start <= inner_start and inner_end <= outer_end
