"""Logging helpers shared by the OAuth core and the HTTP layer."""

from __future__ import annotations

import logging
import sys
from typing import Final

_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* truncated to its first *keep_chars* characters.

    Tokens, codes and verifiers must never reach a log record in full; call
    sites that need to reference one for troubleshooting pass it through
    here first.
    """
    if not value:
        return "<none>"
    if len(value) <= keep_chars:
        return "*" * len(value)
    return f"{value[:keep_chars]}****"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure the ``jcard-auth`` logger hierarchy to write to stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger = logging.getLogger("jcard-auth")
    logger.setLevel(level)
    if not any(getattr(h, "_jcard_auth", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._jcard_auth = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
