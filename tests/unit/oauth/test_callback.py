"""Unit tests for the one-shot CallbackHandler state machine."""

from __future__ import annotations

import logging

import pytest

from _fakes import FakeSession, fake_response
from jcard_auth.oauth.callback import CallbackHandler, CallbackState, strip_oauth_params
from jcard_auth.oauth.errors import MissingVerifierError, OAuthFlowError, TokenExchangeError
from jcard_auth.oauth.exchange import TokenExchangeClient
from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.store import MemoryTokenStore


class Observer:
    def __init__(self) -> None:
        self.changes = 0
        self.errors: list[OAuthFlowError] = []

    def session_changed(self) -> None:
        self.changes += 1

    def error(self, exc: OAuthFlowError) -> None:
        self.errors.append(exc)


@pytest.fixture()
def observer() -> Observer:
    return Observer()


@pytest.fixture()
def handler(
    config: OAuthConfig, store: MemoryTokenStore, session: FakeSession, observer: Observer
) -> CallbackHandler:
    client = TokenExchangeClient(config, store, session=session)  # type: ignore[arg-type]
    return CallbackHandler(
        client, on_session_change=observer.session_changed, on_error=observer.error
    )


# --------------------------------------------------------------------------- #
# strip_oauth_params                                                          #
# --------------------------------------------------------------------------- #
def test_strip_oauth_params_keeps_unrelated_query() -> None:
    url = "https://x/app/?tab=2&code=abc&state=s#top"
    cleaned = strip_oauth_params(url)
    assert cleaned == "https://x/app/?tab=2#top"
    assert strip_oauth_params(cleaned) == cleaned


def test_strip_oauth_params_removes_error_fields() -> None:
    assert (
        strip_oauth_params("https://x/?error=access_denied&error_description=no")
        == "https://x/"
    )


# --------------------------------------------------------------------------- #
# Transitions                                                                 #
# --------------------------------------------------------------------------- #
def test_no_code_stays_idle_without_network(
    handler: CallbackHandler, session: FakeSession, observer: Observer
) -> None:
    result = handler.handle("https://x/?tab=1")
    assert result.state is CallbackState.IDLE
    assert handler.state is CallbackState.IDLE
    assert result.clean_url == "https://x/?tab=1"
    assert session.posts == []
    assert observer.changes == 0 and observer.errors == []


def test_code_leads_to_authenticated(
    handler: CallbackHandler,
    store: MemoryTokenStore,
    session: FakeSession,
    observer: Observer,
) -> None:
    store.set_pending_verifier("V")
    session.queue(fake_response(200, {"access_token": "A", "expires_in": 3600}))

    result = handler.handle("http://testserver/?code=xyz&state=s")

    assert result.state is CallbackState.AUTHENTICATED
    assert result.credential is not None and result.credential.access_token == "A"
    assert result.clean_url == "http://testserver/"
    assert session.posts[0]["data"]["code"] == "xyz"
    assert observer.changes == 1
    assert observer.errors == []


def test_failed_exchange_is_reported_not_raised(
    handler: CallbackHandler,
    store: MemoryTokenStore,
    session: FakeSession,
    observer: Observer,
) -> None:
    store.set_pending_verifier("V")
    session.queue(fake_response(400, {"error": "invalid_grant"}))

    result = handler.handle("http://testserver/?code=xyz")

    assert result.state is CallbackState.FAILED
    assert isinstance(result.error, TokenExchangeError)
    assert observer.errors == [result.error]
    assert observer.changes == 0
    assert store.read() is None


def test_missing_verifier_is_a_failure(
    handler: CallbackHandler, session: FakeSession, observer: Observer
) -> None:
    result = handler.handle("http://testserver/?code=xyz")
    assert result.state is CallbackState.FAILED
    assert isinstance(result.error, MissingVerifierError)
    assert session.posts == []


def test_provider_error_fails_without_exchange(
    handler: CallbackHandler,
    store: MemoryTokenStore,
    session: FakeSession,
    observer: Observer,
) -> None:
    store.set_pending_verifier("V")
    result = handler.handle(
        "http://testserver/?error=access_denied&error_description=User+denied"
    )
    assert result.state is CallbackState.FAILED
    assert isinstance(result.error, TokenExchangeError)
    assert result.error.payload == {
        "error": "access_denied",
        "error_description": "User denied",
    }
    assert result.clean_url == "http://testserver/"
    assert session.posts == []


def test_handler_is_single_use(handler: CallbackHandler) -> None:
    handler.handle("http://testserver/?code=xyz")  # fails: no verifier
    with pytest.raises(RuntimeError):
        handler.handle("http://testserver/?code=xyz")


def test_strip_oauth_params_keeps_other_pairs_verbatim() -> None:
    assert strip_oauth_params("https://x/?flag&q=a%20b&code=c") == "https://x/?flag&q=a%20b"


class _FullDiskStore(MemoryTokenStore):
    def save(self, grant):
        raise OSError("disk full")


def test_storage_fault_during_exchange_is_a_failure(
    config: OAuthConfig, session: FakeSession, observer: Observer
) -> None:
    store = _FullDiskStore()
    store.set_pending_verifier("V")
    session.queue(fake_response(200, {"access_token": "A", "expires_in": 3600}))
    client = TokenExchangeClient(config, store, session=session)  # type: ignore[arg-type]
    handler = CallbackHandler(
        client, on_session_change=observer.session_changed, on_error=observer.error
    )

    result = handler.handle("http://testserver/?code=xyz")

    assert result.state is CallbackState.FAILED
    assert handler.state is CallbackState.FAILED
    assert isinstance(result.error, OAuthFlowError)
    assert isinstance(result.error.__cause__, OSError)
    assert observer.errors == [result.error]
    assert observer.changes == 0
    assert result.clean_url == "http://testserver/"


def test_authorization_code_is_masked_in_logs(
    handler: CallbackHandler,
    store: MemoryTokenStore,
    session: FakeSession,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store.set_pending_verifier("V")
    session.queue(fake_response(200, {"access_token": "A", "expires_in": 3600}))

    with caplog.at_level(logging.DEBUG, logger="jcard-auth.oauth.callback"):
        handler.handle("http://testserver/?code=abcdefgh")

    assert "abcdefgh" not in caplog.text
    assert "abcd****" in caplog.text
