"""One-shot handler for the authorization server's redirect back to us.

A :class:`CallbackHandler` is created per inbound request (page load) and
driven exactly once::

    IDLE ──code──▶ AWAITING_CODE ──▶ EXCHANGING ──┬──▶ AUTHENTICATED
      │                                            └──▶ FAILED
      └──(no code, no error)──▶ stays IDLE

The handler keeps no state across requests; the durable session lives in the
:class:`~jcard_auth.oauth.store.TokenStore` behind the exchange client.
Failures are reported to the ``on_error`` observer and returned, never raised.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Final
from urllib.parse import parse_qsl, unquote_plus, urlsplit, urlunsplit

from jcard_auth.oauth.errors import OAuthFlowError, TokenExchangeError
from jcard_auth.oauth.exchange import TokenExchangeClient
from jcard_auth.oauth.log_utils import get_auth_logger
from jcard_auth.oauth.models import Credential
from jcard_auth.utils.logging import mask_sensitive

OAUTH_RESPONSE_PARAMS: Final[frozenset[str]] = frozenset(
    {"code", "state", "error", "error_description", "error_uri"}
)


class CallbackState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CODE = "awaiting_code"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class CallbackResult:
    """Outcome of :meth:`CallbackHandler.handle`."""

    state: CallbackState
    clean_url: str
    credential: Credential | None = None
    error: OAuthFlowError | None = None


def strip_oauth_params(url: str) -> str:
    """Return *url* without authorization-response query parameters.

    Other query parameters, the path and the fragment are preserved, so
    applying it twice yields the same URL.
    """
    parts = urlsplit(url)
    # filter raw pairs so kept parameters stay byte-for-byte as sent
    kept = [
        pair
        for pair in parts.query.split("&")
        if pair and unquote_plus(pair.split("=", 1)[0]) not in OAUTH_RESPONSE_PARAMS
    ]
    return urlunsplit(parts._replace(query="&".join(kept)))


class CallbackHandler:
    """Detect an authorization response in a URL and complete the login."""

    def __init__(
        self,
        exchange_client: TokenExchangeClient,
        *,
        on_session_change: Callable[[], None] | None = None,
        on_error: Callable[[OAuthFlowError], None] | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.exchange_client = exchange_client
        self.on_session_change = on_session_change
        self.on_error = on_error
        self.state = CallbackState.IDLE
        self._log = get_auth_logger(
            base_logger_name="jcard-auth.oauth.callback",
            namespace=getattr(exchange_client.store, "namespace", None),
            correlation_id=correlation_id,
        )

    def handle(self, url: str) -> CallbackResult:
        """Process the request/page *url* once."""
        if self.state is not CallbackState.IDLE:
            raise RuntimeError("CallbackHandler instances are single-use")

        params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
        code = params.get("code")
        provider_error = params.get("error")

        if provider_error:
            error = TokenExchangeError(
                f"Authorization denied: {provider_error}",
                payload={
                    k: params[k] for k in ("error", "error_description") if k in params
                },
            )
            return self._fail(url, error)

        if not code:
            return CallbackResult(state=self.state, clean_url=url)

        self.state = CallbackState.AWAITING_CODE
        self._log.debug("Authorization code detected code=%s", mask_sensitive(code, 4))

        self.state = CallbackState.EXCHANGING
        try:
            credential = self.exchange_client.exchange(code)
        except OAuthFlowError as exc:
            return self._fail(url, exc)
        except Exception as exc:  # broad: storage faults end the attempt too
            error = OAuthFlowError(f"Login failed: {exc}")
            error.__cause__ = exc
            return self._fail(url, error)

        self.state = CallbackState.AUTHENTICATED
        self._log.info("Login completed")
        if self.on_session_change is not None:
            self.on_session_change()
        return CallbackResult(
            state=self.state,
            clean_url=strip_oauth_params(url),
            credential=credential,
        )

    def _fail(self, url: str, error: OAuthFlowError) -> CallbackResult:
        self.state = CallbackState.FAILED
        self._log.warning("Login failed: %s", error)
        if self.on_error is not None:
            self.on_error(error)
        return CallbackResult(
            state=self.state,
            clean_url=strip_oauth_params(url),
            error=error,
        )
