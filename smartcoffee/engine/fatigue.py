"""
Sleep scoring helpers: fatigue classification and a composite quality score.
"""

from typing import List, Tuple

from .types import FatigueLevel, SleepSnapshot


# (min_quality, max_quality, min_hours, max_hours) -> level, first match wins.
# Upper bounds are exclusive; None means unbounded.
FATIGUE_TABLE = [
    ((80.0, None, 7.0, None), FatigueLevel.LOW),
    ((60.0, 80.0, 6.0, 7.0), FatigueLevel.MODERATE),
    ((40.0, 60.0, 5.0, 6.0), FatigueLevel.HIGH),
]


def _in_range(value: float, low, high) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value >= high:
        return False
    return True


def classify_fatigue(sleep: SleepSnapshot) -> FatigueLevel:
    """
    Classify how tired a user is from sleep duration and quality.

    Combinations not covered by the table (e.g. quality 90 after 5 hours)
    are classified as SEVERE.
    """
    hours = sleep.hours
    quality = sleep.quality_score

    for (min_q, max_q, min_h, max_h), level in FATIGUE_TABLE:
        if _in_range(quality, min_q, max_q) and _in_range(hours, min_h, max_h):
            return level

    return FatigueLevel.SEVERE


# Score bands: list of (ranges, score). A value scores the first band where it
# falls into any of the half-open ranges; anything else scores the fallback.
Band = Tuple[List[Tuple[float, float]], float]

DURATION_BANDS: List[Band] = [
    ([(7.0, 9.0)], 100.0),
    ([(6.0, 7.0), (9.0, 10.0)], 80.0),
    ([(5.0, 6.0), (10.0, 11.0)], 60.0),
    ([(4.0, 5.0), (11.0, 12.0)], 40.0),
]

DEEP_SLEEP_BANDS: List[Band] = [
    ([(15.0, 20.0)], 100.0),
    ([(12.0, 15.0), (20.0, 25.0)], 80.0),
    ([(10.0, 12.0), (25.0, 30.0)], 60.0),
    ([(8.0, 10.0), (30.0, 35.0)], 40.0),
]

REM_SLEEP_BANDS: List[Band] = [
    ([(20.0, 25.0)], 100.0),
    ([(15.0, 20.0), (25.0, 30.0)], 80.0),
    ([(10.0, 15.0), (30.0, 35.0)], 60.0),
    ([(5.0, 10.0), (35.0, 40.0)], 40.0),
]

HEART_RATE_BANDS: List[Band] = [
    ([(50.0, 70.0)], 100.0),
    ([(70.0, 80.0)], 80.0),
    ([(80.0, 90.0)], 60.0),
    ([(90.0, 100.0)], 40.0),
]

FALLBACK_BAND_SCORE = 20.0


def _band_score(value: float, bands: List[Band], closed_bands: int = 1) -> float:
    """The first `closed_bands` bands include their upper edge (e.g. exactly 9 hours)."""
    for index, (ranges, score) in enumerate(bands):
        closed = index < closed_bands
        for low, high in ranges:
            if low <= value < high or (closed and value == high):
                return score
    return FALLBACK_BAND_SCORE


def compute_sleep_quality(
    duration_seconds: float,
    deep_sleep_percent: float,
    rem_sleep_percent: float,
    average_heart_rate: float
) -> float:
    """
    Composite 0-100 sleep quality score.

    Weights: duration 40%, deep sleep 30%, REM 20%, heart rate 10%.
    Providers use this when a device reports stages but no quality score.
    """
    hours = duration_seconds / 3600

    score = 0.0
    score += _band_score(hours, DURATION_BANDS) * 0.4
    score += _band_score(deep_sleep_percent, DEEP_SLEEP_BANDS) * 0.3
    score += _band_score(rem_sleep_percent, REM_SLEEP_BANDS) * 0.2
    score += _band_score(average_heart_rate, HEART_RATE_BANDS, closed_bands=len(HEART_RATE_BANDS)) * 0.1

    return min(100.0, max(0.0, score))
