from .types import (
    CoffeeType,
    FatigueLevel,
    Recommendation,
    SleepSnapshot,
    TimeContext,
    UserPreferences,
    DEFAULT_SLEEP_SNAPSHOT,
)
from .fatigue import classify_fatigue, compute_sleep_quality
from .scoring import score_base
from .adjustments import apply_time_of_day, merge_preferences, enforce_caffeine_limit, finalize_safety
from .decision import decide, CoffeeDecisionEngine
