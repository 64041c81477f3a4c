"""Shared fixtures: frozen clock, in-memory store and a fake HTTP session."""

from __future__ import annotations

import pytest

from _fakes import FakeSession, MutableClock
from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.store import MemoryTokenStore


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture()
def store(clock: MutableClock) -> MemoryTokenStore:
    return MemoryTokenStore(clock=clock)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def config() -> OAuthConfig:
    return OAuthConfig(
        client_id="abc",
        redirect_uri="http://testserver/",
        scopes=("read",),
        authorization_endpoint="https://auth.example.test/authorize",
        token_endpoint="https://auth.example.test/api/token",
        api_base_url="https://api.example.test/v1",
        exchange_timeout=5.0,
    )
