from smartcoffee.config import Settings


def test_defaults_are_valid():
    settings = Settings()
    assert settings.validate_device_settings() == []
    assert settings.device_url == "http://192.168.1.100"


def test_device_url_includes_non_default_port():
    settings = Settings(device_base_url="http://coffee.local/", device_port=8080)
    assert settings.device_host == "coffee.local"
    assert settings.device_url == "http://coffee.local:8080"


def test_https_default_port_is_omitted():
    settings = Settings(device_base_url="coffee.local", device_port=443, device_use_https=True)
    assert settings.device_url == "https://coffee.local"


def test_invalid_settings_are_reported():
    settings = Settings(
        device_base_url="http://999.1.1.1",
        device_port=70000,
        device_connection_timeout=0.5,
        device_command_timeout=120,
        device_retry_attempts=11
    )
    assert settings.validate_device_settings() == [
        "Device URL is not valid",
        "Device port must be between 1 and 65535",
        "Connection timeout must be between 1 and 30 seconds",
        "Command timeout must be between 1 and 60 seconds",
        "Retry attempts must be between 0 and 10",
    ]


def test_empty_url_is_reported():
    settings = Settings(device_base_url="")
    assert "Device URL cannot be empty" in settings.validate_device_settings()
