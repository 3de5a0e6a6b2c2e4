"""
Base scoring: turns a night of sleep into a first draft recommendation.
"""

from typing import List

from .types import CoffeeType, FatigueLevel, Recommendation, SleepSnapshot


MIN_STRENGTH = 0.1
MAX_STRENGTH = 1.0

# Strength weights
BASE_STRENGTH = 0.5
DURATION_WEIGHT = 0.40
QUALITY_WEIGHT = 0.35
FATIGUE_WEIGHT = 0.25

TARGET_SLEEP_HOURS = 8.0
TARGET_QUALITY = 80.0

MIN_CONFIDENCE = 0.3


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_strength(hours: float, quality: float, fatigue: FatigueLevel) -> float:
    """Weighted sum of sleep debt, quality deficit and fatigue on top of a 0.5 base."""
    strength = BASE_STRENGTH

    duration_factor = max(0.0, (TARGET_SLEEP_HOURS - hours) / TARGET_SLEEP_HOURS)
    strength += duration_factor * DURATION_WEIGHT

    quality_factor = max(0.0, (TARGET_QUALITY - quality) / TARGET_QUALITY)
    strength += quality_factor * QUALITY_WEIGHT

    strength += fatigue.recommended_strength * FATIGUE_WEIGHT

    return clamp(strength, MIN_STRENGTH, MAX_STRENGTH)


def calculate_urgency(hours: float, quality: float, fatigue: FatigueLevel) -> float:
    urgency = fatigue.base_urgency

    # Very little sleep
    if hours < 5.0:
        urgency = min(1.0, urgency + 0.3)

    # Very poor quality
    if quality < 40.0:
        urgency = min(1.0, urgency + 0.2)

    return urgency


def calculate_confidence(hours: float, quality: float) -> float:
    """How much the input data can be trusted; extreme readings lower it."""
    confidence = 0.8

    if hours < 3.0 or hours > 12.0:
        confidence -= 0.3

    if quality < 20.0 or quality > 95.0:
        confidence -= 0.2

    if 6.0 <= hours <= 9.0 and quality >= 60.0:
        confidence = min(1.0, confidence + 0.1)

    return max(MIN_CONFIDENCE, confidence)


def determine_coffee_type(strength: float, fatigue: FatigueLevel) -> CoffeeType:
    if strength >= 0.8 or fatigue == FatigueLevel.SEVERE:
        return CoffeeType.SHORT_ESPRESSO
    if strength >= 0.5 or fatigue == FatigueLevel.HIGH:
        return CoffeeType.LONG_ESPRESSO
    return CoffeeType.LATTE


def generate_reasoning(
    hours: float,
    quality: float,
    fatigue: FatigueLevel,
    coffee_type: CoffeeType,
    strength: float
) -> List[str]:
    reasons = []

    if hours < 6.0:
        reasons.append(f"Short sleep ({hours:.1f}h)")
    elif hours > 9.0:
        reasons.append(f"Long sleep ({hours:.1f}h)")
    else:
        reasons.append("Optimal sleep duration")

    if quality < 50:
        reasons.append(f"Low sleep quality ({int(quality)}%)")
    elif quality > 80:
        reasons.append(f"Excellent sleep quality ({int(quality)}%)")

    reasons.append(fatigue.display_name.lower())
    reasons.append(coffee_type.display_name)

    if strength > 0.8:
        reasons.append("Maximum intensity")
    elif strength < 0.3:
        reasons.append("Gentle intensity")

    return reasons


def score_base(sleep: SleepSnapshot, fatigue: FatigueLevel) -> Recommendation:
    """
    Build the draft recommendation from sleep metrics and fatigue level.

    Args:
        sleep: The night of sleep being evaluated
        fatigue: Fatigue level already derived from the same snapshot

    Returns:
        Draft Recommendation; confidence is final from here on
    """
    hours = sleep.hours
    quality = sleep.quality_score

    strength = calculate_strength(hours, quality, fatigue)
    urgency = calculate_urgency(hours, quality, fatigue)
    confidence = calculate_confidence(hours, quality)
    coffee_type = determine_coffee_type(strength, fatigue)

    reasoning = generate_reasoning(hours, quality, fatigue, coffee_type, strength)

    return Recommendation(
        coffee_type=coffee_type,
        strength=strength,
        urgency=urgency,
        confidence=confidence,
        reasoning=tuple(reasoning),
    )
