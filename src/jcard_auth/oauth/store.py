"""Session persistence for the OAuth core.

This module introduces a *narrow* persistence interface (:class:`TokenStore`)
and two implementations:

* :class:`MemoryTokenStore` – process-local, used by tests and short-lived
  tools.
* :class:`DiskTokenStore` – one JSON document per namespace, survives
  restarts.

Both keep four logical slots, namespaced so they never collide with unrelated
application state::

    <namespace>_access_token
    <namespace>_refresh_token
    <namespace>_token_expiration     (epoch milliseconds)
    <namespace>_code_verifier        (pending PKCE verifier)

The design follows these goals:

* **Atomicity** – every operation is one read-modify-write of the whole slot
  mapping under a lock; the disk backend writes with *temp-file + os.replace*.
  A reader never observes a token without its expiry.
* **Fail closed** – a missing or unreadable document reads as "no session".
* **Single use** – :meth:`TokenStore.take_pending_verifier` reads *and* clears.

Environment variables
---------------------
JCARD_AUTH_STORAGE_DIR
    Base directory for :class:`DiskTokenStore`.
    Defaults to ``~/.jcard-auth`` when unset.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from jcard_auth.oauth.clock import Clock, default_clock, now_ms
from jcard_auth.oauth.models import Credential, TokenGrant

_LOG = logging.getLogger("jcard-auth.oauth.store")

DEFAULT_NAMESPACE = "spotify"

_ACCESS = "access_token"
_REFRESH = "refresh_token"
_EXPIRATION = "token_expiration"
_VERIFIER = "code_verifier"


# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.unlink(missing_ok=True)
    # owner-only from creation; tokens never sit in a wider-mode file
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, stat.S_IRUSR | stat.S_IWUSR)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, separators=(",", ":"), sort_keys=True)
        os.replace(tmp, path)  # atomic on POSIX
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class TokenStore(Protocol):
    """Minimal persistence contract for the PKCE client."""

    # ----- credential ------------------------------------------------------ #
    def save(self, grant: TokenGrant) -> Credential: ...
    def read(self) -> Credential | None: ...
    def is_expired(self) -> bool: ...
    def clear(self) -> None: ...

    # ----- pending verifier ------------------------------------------------ #
    def set_pending_verifier(self, verifier: str) -> None: ...
    def take_pending_verifier(self) -> str | None: ...


class _SlotStore:
    """Shared slot logic; subclasses provide whole-mapping load/dump."""

    def __init__(self, *, namespace: str = DEFAULT_NAMESPACE, clock: Clock = default_clock) -> None:
        self.namespace = namespace
        self.clock = clock
        self._lock = threading.RLock()

    def key(self, slot: str) -> str:
        """Return the namespaced key under which *slot* is persisted."""
        return f"{self.namespace}_{slot}"

    def _load(self) -> dict[str, Any]:  # pragma: no cover - abstract
        raise NotImplementedError

    def _dump(self, slots: dict[str, Any]) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    # ---------------- credential ----------------------------------------- #
    def save(self, grant: TokenGrant) -> Credential:
        """Persist *grant* and its computed expiry as one unit."""
        credential = Credential(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=now_ms(self.clock) + grant.expires_in * 1000,
        )
        with self._lock:
            slots = self._load()
            slots[self.key(_ACCESS)] = credential.access_token
            slots[self.key(_EXPIRATION)] = credential.expires_at
            if credential.refresh_token:
                slots[self.key(_REFRESH)] = credential.refresh_token
            else:
                slots.pop(self.key(_REFRESH), None)
            self._dump(slots)
        _LOG.debug(
            "Saved credential namespace=%s (expires in %ss, refresh=%s)",
            self.namespace,
            grant.expires_in,
            bool(credential.refresh_token),
        )
        return credential

    def read(self) -> Credential | None:
        with self._lock:
            slots = self._load()
        access_token = slots.get(self.key(_ACCESS))
        if not access_token:
            return None
        expiration = slots.get(self.key(_EXPIRATION))
        try:
            expires_at = int(expiration)
        except (TypeError, ValueError):
            # token without a usable expiry: treat as already expired
            expires_at = 0
        return Credential(
            access_token=access_token,
            expires_at=expires_at,
            refresh_token=slots.get(self.key(_REFRESH)) or None,
        )

    def is_expired(self) -> bool:
        """Return *True* when no expiry is stored or it has passed."""
        with self._lock:
            expiration = self._load().get(self.key(_EXPIRATION))
        try:
            return now_ms(self.clock) >= int(expiration)
        except (TypeError, ValueError):
            return True

    def clear(self) -> None:
        """Remove all four slots; a no-op when nothing is stored."""
        with self._lock:
            slots = self._load()
            keys = [self.key(s) for s in (_ACCESS, _REFRESH, _EXPIRATION, _VERIFIER)]
            if not any(k in slots for k in keys):
                return
            for k in keys:
                slots.pop(k, None)
            self._dump(slots)
        _LOG.debug("Cleared session namespace=%s", self.namespace)

    # ---------------- pending verifier ----------------------------------- #
    def set_pending_verifier(self, verifier: str) -> None:
        """Store *verifier*, replacing any unconsumed one."""
        with self._lock:
            slots = self._load()
            slots[self.key(_VERIFIER)] = verifier
            self._dump(slots)

    def take_pending_verifier(self) -> str | None:
        """Return and clear the pending verifier (single-use)."""
        with self._lock:
            slots = self._load()
            verifier = slots.pop(self.key(_VERIFIER), None)
            if verifier is not None:
                self._dump(slots)
        return verifier or None


# --------------------------------------------------------------------------- #
# Implementations                                                             #
# --------------------------------------------------------------------------- #


class MemoryTokenStore(_SlotStore, TokenStore):
    """Dict-backed implementation of :class:`TokenStore`."""

    def __init__(self, *, namespace: str = DEFAULT_NAMESPACE, clock: Clock = default_clock) -> None:
        super().__init__(namespace=namespace, clock=clock)
        self._slots: dict[str, Any] = {}

    def _load(self) -> dict[str, Any]:
        return dict(self._slots)

    def _dump(self, slots: dict[str, Any]) -> None:
        self._slots = dict(slots)


class DiskTokenStore(_SlotStore, TokenStore):
    """JSON-file implementation of :class:`TokenStore`."""

    def __init__(
        self,
        base_dir: str | os.PathLike | None = None,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Clock = default_clock,
    ) -> None:
        super().__init__(namespace=namespace, clock=clock)
        self.base_dir = Path(
            base_dir or os.getenv("JCARD_AUTH_STORAGE_DIR") or Path.home() / ".jcard-auth"
        ).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.namespace}.json"

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except ValueError:  # bad JSON or bad UTF-8
            _LOG.warning("Ignoring unreadable session file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, slots: dict[str, Any]) -> None:
        _atomic_write(self.path, slots)


# --------------------------------------------------------------------------- #
# Convenience – default singleton                                            #
# --------------------------------------------------------------------------- #

_default_store: DiskTokenStore | None = None


def default_store() -> DiskTokenStore:
    """Return a process-wide singleton :class:`DiskTokenStore`."""
    global _default_store  # noqa: PLW0603
    if _default_store is None:
        _default_store = DiskTokenStore()
    return _default_store
