from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List
import re


IP_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
HOSTNAME_PATTERN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./smart_coffee.db"
    log_level: str = "INFO"

    # Coffee machine (microcontroller on the local network)
    device_base_url: str = "http://192.168.1.100"
    device_port: int = 80
    device_use_https: bool = False
    device_connection_timeout: float = 5.0  # seconds
    device_command_timeout: float = 10.0  # seconds
    device_retry_attempts: int = 3

    # Defaults for users without saved preferences
    default_max_caffeine_mg: float = 400.0
    default_timezone: str = "Europe/Bucharest"

    # Brew automatically at each user's wake time
    auto_brew_enabled: bool = False

    @property
    def device_host(self) -> str:
        return self.device_base_url.replace("http://", "").replace("https://", "").rstrip("/")

    @property
    def device_url(self) -> str:
        """Full device URL, omitting the port when it is the scheme default."""
        scheme = "https" if self.device_use_https else "http"
        if (self.device_port == 80 and not self.device_use_https) or (self.device_port == 443 and self.device_use_https):
            return f"{scheme}://{self.device_host}"
        return f"{scheme}://{self.device_host}:{self.device_port}"

    def validate_device_settings(self) -> List[str]:
        """Return a list of problems with the device settings (empty when valid)."""
        errors = []

        if not self.device_base_url:
            errors.append("Device URL cannot be empty")
        elif not _is_valid_host(self.device_host):
            errors.append("Device URL is not valid")

        if self.device_port < 1 or self.device_port > 65535:
            errors.append("Device port must be between 1 and 65535")

        if self.device_connection_timeout < 1.0 or self.device_connection_timeout > 30.0:
            errors.append("Connection timeout must be between 1 and 30 seconds")

        if self.device_command_timeout < 1.0 or self.device_command_timeout > 60.0:
            errors.append("Command timeout must be between 1 and 60 seconds")

        if self.device_retry_attempts < 0 or self.device_retry_attempts > 10:
            errors.append("Retry attempts must be between 0 and 10")

        return errors


def _is_valid_host(host: str) -> bool:
    if IP_PATTERN.match(host):
        return all(0 <= int(part) <= 255 for part in host.split("."))
    return HOSTNAME_PATTERN.match(host) is not None


@lru_cache
def get_settings() -> Settings:
    return Settings()
