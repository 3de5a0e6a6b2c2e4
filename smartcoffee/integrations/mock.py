import random
from datetime import datetime, timedelta
from typing import Optional

from smartcoffee.engine.fatigue import compute_sleep_quality
from smartcoffee.engine.types import SleepSnapshot
from .base import SleepDataProvider


class MockSleepProvider(SleepDataProvider):
    """Mock sleep data provider for testing and development."""

    source = "mock"

    SCENARIOS = {
        "rested": {
            "hours": 8.5,
            "quality_score": 88,
            "average_heart_rate": 54,
            "deep_sleep_percent": 20,
            "rem_sleep_percent": 23,
        },
        "average": {
            "hours": 6.8,
            "quality_score": 72,
            "average_heart_rate": 60,
            "deep_sleep_percent": 17,
            "rem_sleep_percent": 21,
        },
        "poor_sleep": {
            "hours": 5.5,
            "quality_score": 45,
            "average_heart_rate": 68,
            "deep_sleep_percent": 11,
            "rem_sleep_percent": 14,
        },
        "sleepless": {
            "hours": 3.0,
            "quality_score": 25,
            "average_heart_rate": 74,
            "deep_sleep_percent": 6,
            "rem_sleep_percent": 9,
        },
        "oversleep": {
            "hours": 10.5,
            "quality_score": 65,
            "average_heart_rate": 58,
            "deep_sleep_percent": 16,
            "rem_sleep_percent": 26,
        },
    }

    def __init__(self, scenario: str = "average"):
        """
        Initialize mock with a scenario.

        Scenarios:
        - "rested": Long, high quality sleep
        - "average": Normal night
        - "poor_sleep": Short night with little deep sleep
        - "sleepless": Barely slept
        - "oversleep": Long but mediocre sleep
        - "random": Randomized values, quality derived from the stages
        """
        self.scenario = scenario

    async def fetch_latest_snapshot(self, access_token: Optional[dict] = None) -> SleepSnapshot:
        """Generate a sleep snapshot for the configured scenario."""
        if self.scenario == "random":
            data = self._random_night()
        else:
            data = self.SCENARIOS.get(self.scenario, self.SCENARIOS["average"])

        return SleepSnapshot(
            duration_seconds=data["hours"] * 3600,
            quality_score=float(data["quality_score"]),
            average_heart_rate=float(data["average_heart_rate"]),
            deep_sleep_percent=float(data["deep_sleep_percent"]),
            rem_sleep_percent=float(data["rem_sleep_percent"]),
            detected_wake_time=datetime.utcnow() - timedelta(minutes=10),
        )

    def _random_night(self) -> dict:
        hours = round(random.uniform(3.0, 10.0), 1)
        heart_rate = random.randint(48, 80)
        deep = random.randint(5, 30)
        rem = random.randint(8, 30)
        return {
            "hours": hours,
            "quality_score": round(compute_sleep_quality(hours * 3600, deep, rem, heart_rate), 1),
            "average_heart_rate": heart_rate,
            "deep_sleep_percent": deep,
            "rem_sleep_percent": rem,
        }
