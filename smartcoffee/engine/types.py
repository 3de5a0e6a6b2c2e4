"""
Value types shared by the coffee decision pipeline.

Everything here is immutable: stages receive one value and return a new one.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


REASONING_SEPARATOR = " • "


class FatigueLevel(str, Enum):
    """Discrete tiredness classification derived from a night's sleep."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    SEVERE = "severe"

    @property
    def recommended_strength(self) -> float:
        return FATIGUE_RECOMMENDED_STRENGTH[self]

    @property
    def base_urgency(self) -> float:
        return FATIGUE_BASE_URGENCY[self]

    @property
    def display_name(self) -> str:
        return FATIGUE_DISPLAY_NAMES[self]


FATIGUE_RECOMMENDED_STRENGTH = {
    FatigueLevel.LOW: 0.3,
    FatigueLevel.MODERATE: 0.6,
    FatigueLevel.HIGH: 0.8,
    FatigueLevel.SEVERE: 1.0,
}

FATIGUE_BASE_URGENCY = {
    FatigueLevel.LOW: 0.3,
    FatigueLevel.MODERATE: 0.5,
    FatigueLevel.HIGH: 0.7,
    FatigueLevel.SEVERE: 0.9,
}

FATIGUE_DISPLAY_NAMES = {
    FatigueLevel.LOW: "Rested",
    FatigueLevel.MODERATE: "Slightly tired",
    FatigueLevel.HIGH: "Tired",
    FatigueLevel.SEVERE: "Very tired",
}


class CoffeeType(str, Enum):
    """Drinks the machine can brew. Values are the machine's wire names."""
    LATTE = "latte"
    LONG_ESPRESSO = "lung"
    SHORT_ESPRESSO = "scurt"

    @property
    def caffeine_content_mg(self) -> float:
        return COFFEE_CAFFEINE_MG[self]

    @property
    def rank(self) -> int:
        """0 is the gentlest drink, higher is stronger."""
        return COFFEE_RANK[self]

    @property
    def display_name(self) -> str:
        return COFFEE_DISPLAY_NAMES[self]

    @classmethod
    def gentlest(cls) -> "CoffeeType":
        return min(cls, key=lambda coffee_type: coffee_type.rank)


COFFEE_CAFFEINE_MG = {
    CoffeeType.LATTE: 63.0,
    CoffeeType.LONG_ESPRESSO: 77.0,
    CoffeeType.SHORT_ESPRESSO: 63.0,
}

COFFEE_RANK = {
    CoffeeType.LATTE: 0,
    CoffeeType.LONG_ESPRESSO: 1,
    CoffeeType.SHORT_ESPRESSO: 2,
}

COFFEE_DISPLAY_NAMES = {
    CoffeeType.LATTE: "Latte",
    CoffeeType.LONG_ESPRESSO: "Long espresso",
    CoffeeType.SHORT_ESPRESSO: "Short espresso",
}


@dataclass(frozen=True)
class SleepSnapshot:
    """One night of sleep as reported by a sleep data provider."""
    duration_seconds: float
    quality_score: float  # 0-100
    average_heart_rate: float  # bpm
    deep_sleep_percent: float  # 0-100
    rem_sleep_percent: float  # 0-100
    detected_wake_time: Optional[datetime] = None

    @property
    def hours(self) -> float:
        return self.duration_seconds / 3600

    @property
    def light_sleep_percent(self) -> float:
        return max(0.0, 100.0 - self.deep_sleep_percent - self.rem_sleep_percent)

    @property
    def is_duration_optimal(self) -> bool:
        return 7.0 <= self.hours <= 9.0

    @property
    def is_quality_good(self) -> bool:
        return self.quality_score >= 70.0

    @property
    def has_adequate_deep_sleep(self) -> bool:
        return 15.0 <= self.deep_sleep_percent <= 25.0

    @property
    def has_adequate_rem_sleep(self) -> bool:
        return 20.0 <= self.rem_sleep_percent <= 25.0

    def to_dict(self) -> dict:
        return {
            "duration_seconds": self.duration_seconds,
            "hours": round(self.hours, 2),
            "quality_score": self.quality_score,
            "average_heart_rate": self.average_heart_rate,
            "deep_sleep_percent": self.deep_sleep_percent,
            "rem_sleep_percent": self.rem_sleep_percent,
            "light_sleep_percent": self.light_sleep_percent,
            "detected_wake_time": self.detected_wake_time.isoformat() if self.detected_wake_time else None,
        }


# Used when no sleep data is available for a user
DEFAULT_SLEEP_SNAPSHOT = SleepSnapshot(
    duration_seconds=8 * 3600,
    quality_score=75.0,
    average_heart_rate=60.0,
    deep_sleep_percent=18.0,
    rem_sleep_percent=22.0,
)


@dataclass(frozen=True)
class UserPreferences:
    """Coffee preferences a user has configured."""
    preferred_type: Optional[CoffeeType] = None
    preferred_strength: float = 0.6  # 0-1
    max_caffeine_per_day_mg: float = 400.0  # FDA guidance for adults

    # Only read by the service layer, never by the pipeline
    auto_mode_enabled: bool = True
    require_confirmation: bool = True
    countdown_seconds: float = 30.0
    auto_only_on_weekdays: bool = False

    def remaining_caffeine_today(self, consumed_today_mg: float) -> float:
        return max(0.0, self.max_caffeine_per_day_mg - consumed_today_mg)

    def has_exceeded_daily_caffeine_limit(self, consumed_today_mg: float) -> bool:
        return consumed_today_mg >= self.max_caffeine_per_day_mg


@dataclass(frozen=True)
class TimeContext:
    """When the decision is being made."""
    hour_of_day: int
    is_weekend: bool = False
    minutes_since_wake: Optional[int] = None

    @classmethod
    def from_datetime(cls, moment: datetime, wake_time: Optional[datetime] = None) -> "TimeContext":
        minutes_since_wake = None
        if wake_time is not None:
            minutes_since_wake = int((moment - wake_time).total_seconds() // 60)
        return cls(
            hour_of_day=moment.hour,
            is_weekend=moment.weekday() >= 5,
            minutes_since_wake=minutes_since_wake,
        )

    @property
    def is_optimal_coffee_time(self) -> bool:
        return 6 <= self.hour_of_day <= 10

    @property
    def is_late_in_day(self) -> bool:
        # Caffeine after 2pm starts to affect the following night
        return self.hour_of_day >= 14


@dataclass(frozen=True)
class Recommendation:
    """A coffee recommendation as it moves through the pipeline."""
    coffee_type: CoffeeType
    strength: float
    urgency: float
    confidence: float
    reasoning: Tuple[str, ...] = field(default_factory=tuple)

    def with_reason(self, *fragments: str) -> Tuple[str, ...]:
        """Reasoning with extra fragments appended (for use with dataclasses.replace)."""
        return self.reasoning + tuple(fragments)

    @property
    def summary(self) -> str:
        return REASONING_SEPARATOR.join(self.reasoning)

    @property
    def projected_caffeine_mg(self) -> float:
        return self.coffee_type.caffeine_content_mg * self.strength

    @property
    def strength_description(self) -> str:
        if self.strength < 0.3:
            return "mild"
        elif self.strength < 0.6:
            return "medium"
        elif self.strength < 0.8:
            return "strong"
        return "very strong"

    @property
    def urgency_description(self) -> str:
        if self.urgency < 0.3:
            return "relaxed"
        elif self.urgency < 0.6:
            return "moderate"
        elif self.urgency < 0.8:
            return "urgent"
        return "very urgent"

    @property
    def estimated_effect_seconds(self) -> float:
        """Time until caffeine peaks: 30 minutes, up to 15 more for strong coffee."""
        return 1800 + self.strength * 900

    def to_dict(self) -> dict:
        return {
            "coffee_type": self.coffee_type.value,
            "coffee_name": self.coffee_type.display_name,
            "strength": round(self.strength, 3),
            "urgency": round(self.urgency, 3),
            "confidence": round(self.confidence, 3),
            "strength_description": self.strength_description,
            "urgency_description": self.urgency_description,
            "caffeine_mg": round(self.projected_caffeine_mg, 1),
            "estimated_effect_seconds": round(self.estimated_effect_seconds),
            "reasoning": list(self.reasoning),
            "summary": self.summary,
        }
