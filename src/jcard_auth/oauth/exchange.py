"""Authorization-code and refresh-token exchanges against the token endpoint.

The client posts ``application/x-www-form-urlencoded`` bodies with
:mod:`requests` and persists successful grants through the injected
:class:`~jcard_auth.oauth.store.TokenStore`.

Rules enforced here:

* the pending verifier is taken from the store *before* the request, so it is
  gone whatever the outcome and can never be replayed against another code;
* only one exchange runs at a time per client; a concurrent caller fails fast
  instead of racing to write the store;
* every request carries a bounded timeout, and transport errors surface as
  :class:`~jcard_auth.oauth.errors.TokenExchangeError`.

SECURITY NOTE: codes, verifiers and tokens are never logged.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import requests

from jcard_auth.oauth.errors import MissingVerifierError, NoAccessTokenError, TokenExchangeError
from jcard_auth.oauth.models import Credential, OAuthConfig, TokenGrant
from jcard_auth.oauth.store import TokenStore

_LOG = logging.getLogger("jcard-auth.oauth.exchange")

_FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


def _json_body(resp: Any) -> dict[str, Any]:
    """Return the response JSON object, or an empty dict when there is none."""
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class TokenExchangeClient:
    """Exchange authorization codes (and refresh tokens) for credentials."""

    def __init__(
        self,
        config: OAuthConfig,
        store: TokenStore,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.session = session or requests.Session()
        self._in_flight = threading.Lock()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def exchange(self, authorization_code: str) -> Credential:
        """Trade *authorization_code* for a credential and persist it.

        Raises
        ------
        MissingVerifierError
            No pending verifier exists in the store.
        TokenExchangeError
            Network failure, non-2xx status, a body without ``access_token``,
            or another exchange already in progress.
        """
        if not self._in_flight.acquire(blocking=False):
            raise TokenExchangeError("Token exchange already in progress")
        try:
            code_verifier = self.store.take_pending_verifier()
            if not code_verifier:
                raise MissingVerifierError()

            payload: dict[str, str] = {
                "client_id": self.config.client_id,
                "grant_type": "authorization_code",
                "code": authorization_code,
                "redirect_uri": self.config.redirect_uri,
                "code_verifier": code_verifier,
            }
            grant = self._request_grant(payload, action="Token exchange")
            credential = self.store.save(grant)
        finally:
            self._in_flight.release()

        _LOG.info(
            "Exchanged authorization code (expires in %ss, refresh=%s)",
            grant.expires_in,
            bool(grant.refresh_token),
        )
        return credential

    def refresh(self) -> Credential:
        """Renew the access token with the stored refresh token.

        Servers may omit ``refresh_token`` from a refresh response; the
        previous one is kept in that case.
        """
        current = self.store.read()
        if current is None or not current.refresh_token:
            raise NoAccessTokenError("No refresh token available")

        if not self._in_flight.acquire(blocking=False):
            raise TokenExchangeError("Token exchange already in progress")
        try:
            payload = {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
                "client_id": self.config.client_id,
            }
            grant = self._request_grant(payload, action="Token refresh")
            if not grant.refresh_token:
                grant = TokenGrant(
                    access_token=grant.access_token,
                    expires_in=grant.expires_in,
                    refresh_token=current.refresh_token,
                )
            credential = self.store.save(grant)
        finally:
            self._in_flight.release()

        _LOG.info("Refreshed access token (expires in %ss)", grant.expires_in)
        return credential

    def ensure_fresh_token(self) -> str:
        """Return a usable access token, refreshing an expired one if possible."""
        current = self.store.read()
        if current is None:
            raise NoAccessTokenError()
        if not self.store.is_expired():
            return current.access_token
        if not current.refresh_token:
            raise NoAccessTokenError("Access token expired and no refresh token is stored")
        return self.refresh().access_token

    # ---------------- internal helpers --------------------------------- #
    def _request_grant(self, payload: dict[str, str], *, action: str) -> TokenGrant:
        try:
            resp = self.session.post(
                self.config.token_endpoint,
                data=payload,
                headers=_FORM_HEADERS,
                timeout=self.config.exchange_timeout,
            )
        except requests.Timeout as exc:
            raise TokenExchangeError(
                f"{action} timed out after {self.config.exchange_timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise TokenExchangeError(f"{action} request failed: {exc}") from exc

        data = _json_body(resp)
        if not resp.ok:
            _LOG.warning(
                "%s rejected status=%s error=%s",
                action,
                resp.status_code,
                data.get("error", "-"),
            )
            raise TokenExchangeError(
                f"{action} failed: token endpoint returned {resp.status_code}",
                status_code=resp.status_code,
                payload=data,
            )
        if not data.get("access_token"):
            _LOG.warning("%s response missing access_token error=%s", action, data.get("error", "-"))
            raise TokenExchangeError(
                f"{action} failed: response missing access_token",
                status_code=resp.status_code,
                payload=data,
            )
        try:
            return TokenGrant.from_response(data)
        except (TypeError, ValueError) as exc:
            raise TokenExchangeError(
                f"{action} failed: malformed token response",
                status_code=resp.status_code,
                payload=data,
            ) from exc
