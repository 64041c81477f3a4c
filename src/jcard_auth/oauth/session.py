"""Read-side session checks used by the presentation layer."""

from __future__ import annotations

from typing import Any

from jcard_auth.oauth.clock import Clock, default_clock
from jcard_auth.oauth.store import TokenStore


class SessionQuery:
    """Answer "is somebody logged in right now?" from the token store.

    By default only the presence of an access token counts, so a session whose
    token has expired still shows as logged in; API calls are what notice the
    expiry.  Pass ``require_fresh=True`` to also demand an unexpired token.
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        clock: Clock = default_clock,
        require_fresh: bool = False,
    ) -> None:
        self.store = store
        self.clock = clock
        self.require_fresh = require_fresh

    def is_authenticated(self) -> bool:
        credential = self.store.read()
        if credential is None:
            return False
        if self.require_fresh:
            return not credential.is_expired(clock=self.clock)
        return True

    def status(self) -> dict[str, Any]:
        """Return a JSON-serialisable summary **without secrets**."""
        credential = self.store.read()
        return {
            "authenticated": self.is_authenticated(),
            "expired": self.store.is_expired(),
            "expires_at": credential.expires_at if credential else None,
        }
