"""Shared fixtures: file-backed SQLite store, frozen clock, stub CAPTCHA."""
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from pbvault.config import Settings
from pbvault.core import security
from pbvault.infra.database import PasteStore
from pbvault.main import create_app
from pbvault.services.paste_service import PasteService

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
CLIENT_IP = "203.0.113.7"


class FrozenClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class StubCaptcha:
    """Accepts only the token 'good'; records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, token, remote_ip):
        self.calls.append((token, remote_ip))
        return token == "good"


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'pb.db'}",
        host="pb.example",
        encryption_secret="test-encryption-secret",
        master_key="master",
        rate_limit_enable=False,
        sweep_interval=0,
    )


@pytest.fixture
def captcha_settings(settings):
    return replace(settings, recaptcha_enable=True, recaptcha_secret="shh")


@pytest.fixture
def store(settings):
    paste_store = PasteStore.from_settings(settings).connect()
    yield paste_store
    paste_store.close()


@pytest.fixture
def service(store, settings, clock):
    return PasteService(store, settings, clock=clock)


@pytest.fixture
def captcha_service(store, captcha_settings, clock):
    return PasteService(store, captcha_settings, clock=clock)


@pytest.fixture
def captcha():
    return StubCaptcha()


@pytest.fixture
def client(settings, clock, captcha):
    app = create_app(settings, captcha=captcha, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def captcha_client(captcha_settings, clock, captcha):
    app = create_app(captcha_settings, captcha=captcha, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)
