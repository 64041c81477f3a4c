"""Exception types raised by the OAuth core.

Only lightweight, **data-carrying** exceptions live here so that web/CLI layers
can transform them into HTTP responses or user-friendly messages.
"""

from __future__ import annotations

from typing import Any


class OAuthFlowError(RuntimeError):
    """Base class for every failure surfaced by :mod:`jcard_auth.oauth`."""

    code: str = "oauth_error"

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.code, "message": str(self)}


class MissingVerifierError(OAuthFlowError):
    """Raised when a code exchange is attempted with no pending PKCE verifier.

    This means the authorization step was skipped, or its verifier was already
    consumed by an earlier exchange.
    """

    code = "missing_verifier"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "No pending code verifier. Start the login flow first.")


class TokenExchangeError(OAuthFlowError):
    """Raised when the token endpoint does not hand out an access token.

    ``payload`` keeps the server's error body (e.g. ``{"error": "invalid_grant"}``)
    when one was returned; ``status_code`` is ``None`` for network-level errors.
    """

    code = "token_exchange_failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or "Failed to obtain access token")
        self.status_code: int | None = status_code
        self.payload: dict[str, Any] = dict(payload or {})

    def to_payload(self) -> dict[str, Any]:
        data = super().to_payload()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        # only the standard RFC 6749 error fields are forwarded
        for key in ("error", "error_description", "error_uri"):
            if key in self.payload:
                data[f"server_{key}"] = self.payload[key]
        return data


class NoAccessTokenError(OAuthFlowError):
    """Raised when a resource call is attempted while unauthenticated."""

    code = "no_access_token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "No access token available")
