"""
Adjustment stages applied to the draft recommendation, in pipeline order:
time of day, user preferences, caffeine budget, final safety checks.

Each stage takes a Recommendation and returns a new one.
"""

from dataclasses import replace

from .scoring import MAX_STRENGTH, MIN_STRENGTH, clamp
from .types import CoffeeType, Recommendation, TimeContext, UserPreferences


EVENING_HOUR = 18
LATE_AFTERNOON_HOUR = 16
EVENING_MAX_STRENGTH = 0.4
LATE_AFTERNOON_MAX_STRENGTH = 0.6

MIN_URGENCY = 0.1
MAX_URGENCY = 1.0


def apply_time_of_day(recommendation: Recommendation, time_context: TimeContext) -> Recommendation:
    """Rescale strength (and urgency on weekends) for the hour of day."""
    hour = time_context.hour_of_day
    coffee_type = recommendation.coffee_type
    strength = recommendation.strength
    urgency = recommendation.urgency

    if 6 <= hour <= 8:
        # Early morning can take a stronger cup
        strength = min(1.0, strength + 0.1)
    elif 9 <= hour <= 11:
        pass
    elif 12 <= hour <= 14:
        strength *= 0.9
    elif hour >= EVENING_HOUR:
        strength *= 0.6
        coffee_type = CoffeeType.gentlest()
        strength = min(EVENING_MAX_STRENGTH, strength)
    elif hour >= 15:
        strength *= 0.6
    else:
        # Night and very early morning
        strength *= 0.7

    if time_context.is_weekend:
        urgency *= 0.7
        strength *= 0.9

    return replace(recommendation, coffee_type=coffee_type, strength=strength, urgency=urgency)


def merge_preferences(recommendation: Recommendation, preferences: UserPreferences) -> Recommendation:
    """A preferred type always wins; strength is averaged with the preferred strength."""
    coffee_type = recommendation.coffee_type
    if preferences.preferred_type is not None:
        coffee_type = preferences.preferred_type

    strength = (recommendation.strength + preferences.preferred_strength) / 2.0

    return replace(recommendation, coffee_type=coffee_type, strength=strength)


def enforce_caffeine_limit(
    recommendation: Recommendation,
    consumed_today_mg: float,
    preferences: UserPreferences
) -> Recommendation:
    """Keep today's total caffeine under the user's daily ceiling."""
    projected_mg = recommendation.projected_caffeine_mg
    if consumed_today_mg + projected_mg <= preferences.max_caffeine_per_day_mg:
        return recommendation

    remaining_mg = preferences.remaining_caffeine_today(consumed_today_mg)

    if remaining_mg <= 0:
        return replace(
            recommendation,
            coffee_type=CoffeeType.gentlest(),
            strength=MIN_STRENGTH,
            reasoning=recommendation.with_reason("Daily caffeine limit reached"),
        )

    max_strength = remaining_mg / recommendation.coffee_type.caffeine_content_mg
    return replace(
        recommendation,
        strength=min(recommendation.strength, max_strength),
        reasoning=recommendation.with_reason("Adjusted for caffeine limit"),
    )


def finalize_safety(recommendation: Recommendation, time_context: TimeContext) -> Recommendation:
    """Hard late-day ceilings, then the authoritative range clamp."""
    hour = time_context.hour_of_day
    coffee_type = recommendation.coffee_type
    strength = recommendation.strength
    reasoning = recommendation.reasoning

    if hour >= LATE_AFTERNOON_HOUR and strength > LATE_AFTERNOON_MAX_STRENGTH:
        strength = LATE_AFTERNOON_MAX_STRENGTH
        reasoning = reasoning + ("Reduced intensity for the late hour",)

    if hour >= EVENING_HOUR:
        coffee_type = CoffeeType.gentlest()
        strength = min(EVENING_MAX_STRENGTH, strength)
        reasoning = reasoning + ("Latte for the evening",)

    return replace(
        recommendation,
        coffee_type=coffee_type,
        strength=clamp(strength, MIN_STRENGTH, MAX_STRENGTH),
        urgency=clamp(recommendation.urgency, MIN_URGENCY, MAX_URGENCY),
        reasoning=reasoning,
    )
