"""
Coffee machine client.

Talks to the microcontroller driving the coffee machine over its small HTTP
API. Payloads use the firmware's camelCase field names.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

import httpx

from smartcoffee.config import Settings, get_settings
from smartcoffee.engine.types import CoffeeType

logger = logging.getLogger(__name__)


class TriggerType(str, Enum):
    """What caused a brew command."""
    AUTO = "auto"            # Automatic, from sleep analysis at wake time
    MANUAL = "manual"        # User pressed brew
    OVERRIDE = "override"    # User overrode the automatic recommendation
    EMERGENCY = "emergency"


class CommandStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    IN_PROGRESS = "in_progress"
    CANCELLED = "cancelled"


class DeviceCommunicationError(Exception):
    """Raised when the coffee machine cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CoffeeCommand:
    """Brew command sent to the machine."""
    coffee_type: CoffeeType
    trigger: TriggerType
    user_id: str
    sleep_score: Optional[float] = None
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    command: str = "make_coffee"

    def to_payload(self) -> dict:
        return {
            "command": self.command,
            "type": self.coffee_type.value,
            "trigger": self.trigger.value,
            "sleepScore": self.sleep_score,
            "timestamp": self.timestamp,
            "userId": self.user_id,
            "requestId": self.request_id,
        }


@dataclass
class CoffeeResponse:
    """The machine's answer to a brew command."""
    status: CommandStatus
    message: str = ""
    trigger_type: Optional[str] = None
    estimated_completion: Optional[str] = None
    error_code: Optional[int] = None
    timestamp: Optional[str] = None
    response_time_seconds: Optional[float] = None
    request_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, response_time_seconds: Optional[float] = None) -> "CoffeeResponse":
        try:
            status = CommandStatus(data.get("status", CommandStatus.ERROR.value))
        except ValueError:
            status = CommandStatus.ERROR
        return cls(
            status=status,
            message=data.get("message", ""),
            trigger_type=data.get("triggerType"),
            estimated_completion=data.get("estimatedCompletion"),
            error_code=data.get("errorCode"),
            timestamp=data.get("timestamp"),
            response_time_seconds=response_time_seconds,
        )

    @property
    def is_success(self) -> bool:
        return self.status == CommandStatus.SUCCESS

    @property
    def is_in_progress(self) -> bool:
        return self.status == CommandStatus.IN_PROGRESS

    @property
    def has_error(self) -> bool:
        return self.status == CommandStatus.ERROR


def signal_quality(rssi: int) -> str:
    """Classify WiFi signal strength (dBm)."""
    if rssi >= -30:
        return "excellent"
    elif rssi >= -50:
        return "good"
    elif rssi >= -60:
        return "fair"
    elif rssi >= -70:
        return "weak"
    return "poor"


@dataclass
class DeviceStatus:
    """Status report from the machine."""
    online: bool
    coffee_count_today: int = 0
    auto_coffees_today: int = 0
    manual_coffees_today: int = 0
    wifi_strength: int = -100  # dBm
    uptime_seconds: int = 0
    auto_mode_enabled: bool = False
    last_coffee: Optional[str] = None
    trigger_type: Optional[str] = None
    free_heap_memory: Optional[int] = None
    system_voltage: Optional[float] = None
    temperature: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceStatus":
        return cls(
            online=bool(data.get("online", False)),
            coffee_count_today=data.get("coffeeCountToday", 0),
            auto_coffees_today=data.get("autoCoffeesToday", 0),
            manual_coffees_today=data.get("manualCoffeesToday", 0),
            wifi_strength=data.get("wifiStrength", -100),
            uptime_seconds=data.get("uptimeSeconds", 0),
            auto_mode_enabled=bool(data.get("autoModeEnabled", False)),
            last_coffee=data.get("lastCoffee"),
            trigger_type=data.get("triggerType"),
            free_heap_memory=data.get("freeHeapMemory"),
            system_voltage=data.get("systemVoltage"),
            temperature=data.get("temperature"),
        )

    @property
    def signal_quality(self) -> str:
        return signal_quality(self.wifi_strength)

    @property
    def uptime_description(self) -> str:
        hours = self.uptime_seconds // 3600
        minutes = (self.uptime_seconds % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def to_dict(self) -> dict:
        return {
            "online": self.online,
            "coffee_count_today": self.coffee_count_today,
            "auto_coffees_today": self.auto_coffees_today,
            "manual_coffees_today": self.manual_coffees_today,
            "wifi_strength": self.wifi_strength,
            "signal_quality": self.signal_quality,
            "uptime_seconds": self.uptime_seconds,
            "uptime": self.uptime_description,
            "auto_mode_enabled": self.auto_mode_enabled,
            "last_coffee": self.last_coffee,
            "trigger_type": self.trigger_type,
            "free_heap_memory": self.free_heap_memory,
            "system_voltage": self.system_voltage,
            "temperature": self.temperature,
        }


class CoffeeMachineClient:
    """Async HTTP client for the coffee machine."""

    COFFEE_ENDPOINT = "/coffee/make"
    STATUS_ENDPOINT = "/status"
    HEALTH_ENDPOINT = "/health"
    TEST_ENDPOINT = "/test"

    MAX_COMMAND_HISTORY = 20

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = 0.5
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.device_url
        self.retry_delay = retry_delay
        self._transport = transport
        self.command_times: List[float] = []

    @property
    def average_response_time(self) -> Optional[float]:
        if not self.command_times:
            return None
        return sum(self.command_times) / len(self.command_times)

    async def make_coffee(
        self,
        coffee_type: CoffeeType,
        trigger: TriggerType,
        user_id: str,
        sleep_score: Optional[float] = None
    ) -> CoffeeResponse:
        """
        Send a brew command.

        Returns:
            The machine's CoffeeResponse (which may itself report an error)

        Raises:
            DeviceCommunicationError: the machine could not be reached
        """
        command = CoffeeCommand(
            coffee_type=coffee_type,
            trigger=trigger,
            user_id=user_id,
            sleep_score=sleep_score,
        )

        started = time.monotonic()
        try:
            data = await self._request(
                "POST",
                self.COFFEE_ENDPOINT,
                json=command.to_payload(),
                timeout=self.settings.device_command_timeout,
            )
        except DeviceCommunicationError as e:
            logger.error(f"Brew command {command.request_id} failed: {e}")
            raise

        elapsed = time.monotonic() - started
        self._record_response_time(elapsed)

        response = CoffeeResponse.from_dict(data, response_time_seconds=elapsed)
        response.request_id = command.request_id
        logger.info(
            f"Brew command {command.request_id} ({coffee_type.value}, {trigger.value}) "
            f"-> {response.status.value} in {elapsed:.2f}s"
        )
        return response

    async def get_status(self) -> DeviceStatus:
        data = await self._request("GET", self.STATUS_ENDPOINT)
        return DeviceStatus.from_dict(data)

    async def get_health_metrics(self) -> dict:
        return await self._request("GET", self.HEALTH_ENDPOINT)

    async def test_connection(self) -> bool:
        """True when the machine answers its test endpoint."""
        try:
            await self._request("GET", self.TEST_ENDPOINT)
            return True
        except DeviceCommunicationError as e:
            logger.warning(f"Coffee machine connection test failed: {e}")
            return False

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        timeout: Optional[float] = None
    ) -> dict:
        """Perform a request, retrying transport errors and 5xx responses."""
        attempts = max(1, self.settings.device_retry_attempts + 1)
        timeout = timeout or self.settings.device_connection_timeout
        last_error: Optional[DeviceCommunicationError] = None

        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=timeout,
                    transport=self._transport
                ) as client:
                    response = await client.request(method, path, json=json)
            except httpx.TransportError as e:
                last_error = DeviceCommunicationError(f"{type(e).__name__}: {e}")
            else:
                if response.status_code >= 500:
                    last_error = DeviceCommunicationError(
                        f"Device returned {response.status_code}",
                        status_code=response.status_code
                    )
                elif response.status_code >= 400:
                    raise DeviceCommunicationError(
                        f"Device rejected request with {response.status_code}: {response.text[:200]}",
                        status_code=response.status_code
                    )
                else:
                    try:
                        data = response.json()
                    except ValueError:
                        raise DeviceCommunicationError("Device returned invalid JSON", status_code=response.status_code)
                    if not isinstance(data, dict):
                        raise DeviceCommunicationError("Device returned unexpected payload", status_code=response.status_code)
                    return data

            if attempt < attempts:
                logger.warning(f"{method} {path} attempt {attempt}/{attempts} failed: {last_error}")
                await asyncio.sleep(self.retry_delay * attempt)

        raise last_error

    def _record_response_time(self, seconds: float):
        self.command_times.append(seconds)
        if len(self.command_times) > self.MAX_COMMAND_HISTORY:
            self.command_times = self.command_times[-self.MAX_COMMAND_HISTORY:]
