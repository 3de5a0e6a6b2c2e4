import os

# Keep the test run away from the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smartcoffee.config import Settings
from smartcoffee.db import get_db
from smartcoffee.db.database import Base
from smartcoffee.integrations.device import CoffeeMachineClient
from smartcoffee.models import User, CoffeePreference
import smartcoffee.api.brew as brew_api
import smartcoffee.main as app_main


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def user(db_session):
    user = User(name="Ana", email="ana@example.com", timezone="UTC", wake_time="06:30")
    user.preference = CoffeePreference(
        preferred_strength=0.6,
        max_caffeine_per_day_mg=400.0,
        auto_mode_enabled=True,
        require_confirmation=False,
        countdown_seconds=30.0,
        auto_only_on_weekdays=False
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def device_settings():
    return Settings(device_base_url="http://coffee.local", device_port=80, device_retry_attempts=2)


class FakeMachine:
    """Programmable stand-in for the coffee machine's HTTP API."""

    def __init__(self):
        self.requests = []
        self.down = False
        self.brew_response = {"status": "success", "message": "Brewing", "estimatedCompletion": "2026-10-19T07:02:00Z"}
        self.status_response = {
            "online": True,
            "coffeeCountToday": 2,
            "autoCoffeesToday": 1,
            "manualCoffeesToday": 1,
            "wifiStrength": -45,
            "uptimeSeconds": 3725,
            "autoModeEnabled": True,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("machine offline", request=request)
        if request.url.path == "/coffee/make":
            return httpx.Response(200, json=self.brew_response)
        if request.url.path == "/status":
            return httpx.Response(200, json=self.status_response)
        if request.url.path == "/health":
            return httpx.Response(200, json={"wifiStrength": -45, "uptime": 3725, "successRate": 0.98})
        if request.url.path == "/test":
            return httpx.Response(200, json={"device_id": "smart-coffee-ESP32"})
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture()
def machine():
    return FakeMachine()


@pytest.fixture()
def machine_client(machine, device_settings):
    return CoffeeMachineClient(
        device_settings,
        transport=httpx.MockTransport(machine.handler),
        retry_delay=0
    )


@pytest.fixture()
def client(session_factory, machine_client, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(brew_api.recommender, "client", machine_client)
    app_main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(app_main.app) as test_client:
        yield test_client
    app_main.app.dependency_overrides.clear()
