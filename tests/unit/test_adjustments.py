import pytest

from smartcoffee.engine.adjustments import (
    apply_time_of_day,
    enforce_caffeine_limit,
    finalize_safety,
    merge_preferences,
)
from smartcoffee.engine.types import CoffeeType, Recommendation, TimeContext, UserPreferences


def draft(coffee_type=CoffeeType.LONG_ESPRESSO, strength=0.5, urgency=0.5) -> Recommendation:
    return Recommendation(
        coffee_type=coffee_type,
        strength=strength,
        urgency=urgency,
        confidence=0.8,
        reasoning=("Optimal sleep duration",)
    )


class TestTimeOfDay:
    @pytest.mark.parametrize("hour,expected", [
        (7, 0.6),
        (10, 0.5),
        (13, 0.45),
        (15, 0.3),
        (16, 0.3),
        (3, 0.35),
        (23, 0.3),
    ])
    def test_strength_by_hour(self, hour, expected):
        result = apply_time_of_day(draft(), TimeContext(hour_of_day=hour))
        assert result.strength == pytest.approx(expected)

    def test_morning_bump_is_capped(self):
        result = apply_time_of_day(draft(strength=0.95), TimeContext(hour_of_day=6))
        assert result.strength == 1.0

    def test_evening_switches_to_latte(self):
        result = apply_time_of_day(draft(CoffeeType.SHORT_ESPRESSO, strength=1.0), TimeContext(hour_of_day=19))
        assert result.coffee_type == CoffeeType.LATTE
        assert result.strength == pytest.approx(0.4)

    def test_weekend_softens_strength_and_urgency(self):
        result = apply_time_of_day(draft(), TimeContext(hour_of_day=10, is_weekend=True))
        assert result.strength == pytest.approx(0.45)
        assert result.urgency == pytest.approx(0.35)

    def test_input_is_not_modified(self):
        original = draft()
        apply_time_of_day(original, TimeContext(hour_of_day=19))
        assert original.coffee_type == CoffeeType.LONG_ESPRESSO
        assert original.strength == 0.5


class TestPreferences:
    def test_strength_is_averaged(self):
        result = merge_preferences(draft(strength=0.8), UserPreferences(preferred_strength=0.4))
        assert result.strength == pytest.approx(0.6)
        assert result.coffee_type == CoffeeType.LONG_ESPRESSO

    def test_preferred_type_wins(self):
        prefs = UserPreferences(preferred_type=CoffeeType.LATTE)
        result = merge_preferences(draft(CoffeeType.SHORT_ESPRESSO), prefs)
        assert result.coffee_type == CoffeeType.LATTE


class TestCaffeineLimit:
    def test_clamps_to_remaining_budget(self):
        prefs = UserPreferences(max_caffeine_per_day_mg=400)
        result = enforce_caffeine_limit(draft(CoffeeType.SHORT_ESPRESSO, strength=1.0), 390, prefs)

        assert result.coffee_type == CoffeeType.SHORT_ESPRESSO
        assert result.strength == pytest.approx(10 / 63)
        assert result.reasoning[-1] == "Adjusted for caffeine limit"

    def test_exact_budget_is_allowed(self):
        recommendation = draft(CoffeeType.LATTE, strength=1.0)
        result = enforce_caffeine_limit(recommendation, 337, UserPreferences(max_caffeine_per_day_mg=400))
        assert result is recommendation

    def test_limit_reached_falls_back_to_gentlest(self):
        result = enforce_caffeine_limit(
            draft(CoffeeType.SHORT_ESPRESSO, strength=0.9),
            400,
            UserPreferences(max_caffeine_per_day_mg=400)
        )
        assert result.coffee_type == CoffeeType.LATTE
        assert result.strength == pytest.approx(0.1)
        assert "Daily caffeine limit reached" in result.reasoning

    def test_over_limit_behaves_like_reached(self):
        result = enforce_caffeine_limit(draft(), 550, UserPreferences(max_caffeine_per_day_mg=400))
        assert result.coffee_type == CoffeeType.LATTE
        assert result.strength == pytest.approx(0.1)

    def test_projected_caffeine(self):
        assert draft(CoffeeType.LONG_ESPRESSO, strength=0.5).projected_caffeine_mg == pytest.approx(38.5)


class TestSafety:
    def test_late_afternoon_ceiling(self):
        result = finalize_safety(draft(strength=0.8), TimeContext(hour_of_day=16))
        assert result.strength == pytest.approx(0.6)
        assert result.coffee_type == CoffeeType.LONG_ESPRESSO
        assert result.reasoning[-1] == "Reduced intensity for the late hour"

    def test_evening_forces_latte(self):
        result = finalize_safety(draft(CoffeeType.SHORT_ESPRESSO, strength=0.8), TimeContext(hour_of_day=19))
        assert result.coffee_type == CoffeeType.LATTE
        assert result.strength == pytest.approx(0.4)
        assert result.reasoning[-2:] == ("Reduced intensity for the late hour", "Latte for the evening")

    def test_ranges_are_clamped(self):
        result = finalize_safety(draft(strength=0.05, urgency=1.3), TimeContext(hour_of_day=10))
        assert result.strength == pytest.approx(0.1)
        assert result.urgency == 1.0

        result = finalize_safety(draft(strength=1.4, urgency=0.0), TimeContext(hour_of_day=10))
        assert result.strength == 1.0
        assert result.urgency == pytest.approx(0.1)

    def test_daytime_untouched(self):
        result = finalize_safety(draft(strength=0.9), TimeContext(hour_of_day=9))
        assert result.strength == pytest.approx(0.9)
        assert result.reasoning == ("Optimal sleep duration",)

    @pytest.mark.parametrize("hour", [8, 16, 19])
    def test_applying_twice_changes_nothing(self, hour):
        context = TimeContext(hour_of_day=hour)
        once = finalize_safety(draft(CoffeeType.SHORT_ESPRESSO, strength=0.9, urgency=1.2), context)
        twice = finalize_safety(once, context)

        assert twice.coffee_type == once.coffee_type
        assert twice.strength == once.strength
        assert twice.urgency == once.urgency
