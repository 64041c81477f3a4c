"""Typed, immutable records used by the OAuth core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Final, Iterable, Mapping

from jcard_auth.oauth.clock import Clock, default_clock, now_ms

DEFAULT_CLIENT_ID: Final[str] = "67cad9d0d7434d5e9cec40bc12c5797d"
DEFAULT_REDIRECT_URI: Final[str] = "https://fabiotavernini.github.io/jcard-template/"
DEFAULT_AUTHORIZE_URL: Final[str] = "https://accounts.spotify.com/authorize"
DEFAULT_TOKEN_URL: Final[str] = "https://accounts.spotify.com/api/token"
DEFAULT_API_URL: Final[str] = "https://api.spotify.com/v1"
DEFAULT_SCOPES: Final[tuple[str, ...]] = (
    "playlist-read-private",
    "playlist-read-collaborative",
)
DEFAULT_EXPIRES_IN: Final[int] = 3600
DEFAULT_EXCHANGE_TIMEOUT: Final[float] = 20.0


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class Credential:
    """Snapshot of the stored session material.

    ``expires_at`` is expressed in epoch **milliseconds**.
    """

    access_token: str
    expires_at: int
    refresh_token: str | None = None

    def is_expired(self, *, clock: Clock = default_clock) -> bool:
        """Return *True* once the clock reaches ``expires_at``."""
        return now_ms(clock) >= self.expires_at

    @property
    def bearer_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@dataclass(frozen=True, slots=True)
class TokenGrant:
    """Token material as issued by the token endpoint, before persistence."""

    access_token: str
    expires_in: int = DEFAULT_EXPIRES_IN
    refresh_token: str | None = None

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> "TokenGrant":
        """Build a grant from a parsed token response.

        The caller is responsible for checking ``access_token`` first.
        """
        expires_in = data.get("expires_in")
        return cls(
            access_token=str(data["access_token"]),
            expires_in=int(expires_in) if expires_in is not None else DEFAULT_EXPIRES_IN,
            refresh_token=data.get("refresh_token") or None,
        )


@dataclass(frozen=True)
class OAuthConfig:
    """Client registration and endpoints for one authorization server."""

    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    authorization_endpoint: str = DEFAULT_AUTHORIZE_URL
    token_endpoint: str = DEFAULT_TOKEN_URL
    api_base_url: str = DEFAULT_API_URL
    exchange_timeout: float = DEFAULT_EXCHANGE_TIMEOUT

    def __post_init__(self) -> None:
        # scopes behave as a set but keep first-seen order for a stable URL
        object.__setattr__(self, "scopes", _unique(self.scopes))

    @property
    def scope(self) -> str:
        """Space-joined scope string as sent to the authorization endpoint."""
        return " ".join(self.scopes)

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        """Create a configuration from ``SPOTIFY_*`` environment variables.

        Unset variables fall back to the public jcard-template registration.
        """
        scopes_raw = os.getenv("SPOTIFY_SCOPES")
        timeout_raw = os.getenv("JCARD_EXCHANGE_TIMEOUT")
        return cls(
            client_id=os.getenv("SPOTIFY_CLIENT_ID", DEFAULT_CLIENT_ID),
            redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI", DEFAULT_REDIRECT_URI),
            scopes=tuple(scopes_raw.split()) if scopes_raw else DEFAULT_SCOPES,
            authorization_endpoint=os.getenv("SPOTIFY_AUTHORIZE_URL", DEFAULT_AUTHORIZE_URL),
            token_endpoint=os.getenv("SPOTIFY_TOKEN_URL", DEFAULT_TOKEN_URL),
            api_base_url=os.getenv("SPOTIFY_API_URL", DEFAULT_API_URL).rstrip("/"),
            exchange_timeout=float(timeout_raw) if timeout_raw else DEFAULT_EXCHANGE_TIMEOUT,
        )
