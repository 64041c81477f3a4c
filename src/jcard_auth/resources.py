"""Thin Spotify Web API client used to fill in a J-card.

Calls attach the stored access token as a bearer header and return the parsed
JSON.  Expired or revoked tokens are not handled here: a 401 surfaces as
:class:`requests.HTTPError` and the caller decides whether to log in again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from jcard_auth.oauth.errors import NoAccessTokenError
from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.store import TokenStore

_LOG = logging.getLogger("jcard-auth.resources")

_TIMEOUT = (5, 20)


@dataclass(frozen=True)
class CassetteSides:
    """Track listing for both sides of a tape, one track name per line."""

    side_a: str
    side_b: str
    cover_url: str | None = None


def split_sides(playlist: dict[str, Any]) -> CassetteSides:
    """Split a playlist's tracks in half for side A and side B.

    The first half of the returned tracks go on side A, the rest on side B, so an
    odd track count puts the extra track on side B.
    """
    tracks = playlist.get("tracks") or {}
    items = tracks.get("items") or []
    # the API pages long playlists; split only the tracks actually present
    names = [(item.get("track") or {}).get("name", "") for item in items]
    middle = len(names) // 2
    images = playlist.get("images") or []
    return CassetteSides(
        side_a="\n".join(names[:middle]),
        side_b="\n".join(names[middle:]),
        cover_url=images[0].get("url") if images else None,
    )


class SpotifyClient:
    """Read-only access to the logged-in user's playlists."""

    def __init__(
        self,
        store: TokenStore,
        config: OAuthConfig,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.store = store
        self.base_url = config.api_base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str) -> dict[str, Any]:
        credential = self.store.read()
        if credential is None:
            raise NoAccessTokenError()
        resp = self.session.get(
            f"{self.base_url}{path}",
            headers=credential.bearer_header,
            timeout=_TIMEOUT,
        )
        if not resp.ok:
            _LOG.warning("GET %s returned %s", path, resp.status_code)
        resp.raise_for_status()
        return resp.json()

    def get_playlists(self) -> list[dict[str, Any]]:
        """Return the current user's playlists sorted by name."""
        data = self._get("/me/playlists")
        items = data.get("items") or []
        return sorted(items, key=lambda p: (p.get("name") or "").casefold())

    def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        return self._get(f"/playlists/{playlist_id}")
