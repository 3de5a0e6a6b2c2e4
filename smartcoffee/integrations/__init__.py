from .base import SleepDataProvider
from .mock import MockSleepProvider
from .device import (
    CoffeeMachineClient,
    CoffeeResponse,
    CommandStatus,
    DeviceCommunicationError,
    DeviceStatus,
    TriggerType,
)
