"""
Coffee Decision Engine

Runs the recommendation pipeline: fatigue classification, base scoring,
time-of-day adjustment, preference merge, caffeine budget, safety checks.
The pipeline is a pure function of its arguments and never raises.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .adjustments import apply_time_of_day, enforce_caffeine_limit, finalize_safety, merge_preferences
from .fatigue import classify_fatigue
from .scoring import score_base
from .types import Recommendation, SleepSnapshot, TimeContext, UserPreferences

logger = logging.getLogger(__name__)


def _normalize_time_context(time_context: TimeContext) -> TimeContext:
    hour = max(0, min(23, int(time_context.hour_of_day)))
    if hour == time_context.hour_of_day:
        return time_context
    return replace(time_context, hour_of_day=hour)


def decide(
    sleep: SleepSnapshot,
    preferences: UserPreferences,
    time_context: TimeContext,
    consumed_caffeine_today_mg: float = 0.0
) -> Recommendation:
    """
    Decide which coffee to brew and how strong.

    Args:
        sleep: Last night's sleep snapshot
        preferences: User's coffee preferences
        time_context: Hour of day and weekend flag
        consumed_caffeine_today_mg: Caffeine already consumed today

    Returns:
        Final Recommendation with strength and urgency in [0.1, 1.0]
    """
    time_context = _normalize_time_context(time_context)
    consumed = max(0.0, consumed_caffeine_today_mg)

    # Step 1: How tired is the user
    fatigue = classify_fatigue(sleep)

    # Step 2: Draft from sleep metrics
    recommendation = score_base(sleep, fatigue)

    # Step 3: Time of day
    recommendation = apply_time_of_day(recommendation, time_context)

    # Step 4: User preferences
    recommendation = merge_preferences(recommendation, preferences)

    # Step 5: Daily caffeine budget
    recommendation = enforce_caffeine_limit(recommendation, consumed, preferences)

    # Step 6: Final safety checks
    recommendation = finalize_safety(recommendation, time_context)

    logger.debug(
        f"Decided {recommendation.coffee_type.value} strength={recommendation.strength:.2f} "
        f"urgency={recommendation.urgency:.2f} fatigue={fatigue.value} hour={time_context.hour_of_day}"
    )
    return recommendation


class CoffeeDecisionEngine:
    """Holds a user's default preferences and runs the decision pipeline."""

    def __init__(self, preferences: Optional[UserPreferences] = None):
        self.preferences = preferences or UserPreferences()

    def decide_coffee_type(
        self,
        sleep: SleepSnapshot,
        preferences: Optional[UserPreferences] = None,
        moment: Optional[datetime] = None,
        consumed_caffeine_today_mg: float = 0.0,
        time_context: Optional[TimeContext] = None
    ) -> Recommendation:
        """
        Recommend a coffee for a moment in time (defaults to now).

        An explicit time_context takes precedence over moment.
        """
        if time_context is None:
            moment = moment or datetime.now()
            time_context = TimeContext.from_datetime(moment, wake_time=sleep.detected_wake_time)

        return decide(
            sleep,
            preferences or self.preferences,
            time_context,
            consumed_caffeine_today_mg,
        )
