from abc import ABC, abstractmethod
from typing import Optional

from smartcoffee.engine.types import SleepSnapshot


class SleepDataProvider(ABC):
    """Abstract base class for sleep data sources."""

    source: str = "unknown"

    @abstractmethod
    async def fetch_latest_snapshot(self, access_token: Optional[dict] = None) -> SleepSnapshot:
        """Fetch last night's sleep and normalize it to a SleepSnapshot."""
        pass
