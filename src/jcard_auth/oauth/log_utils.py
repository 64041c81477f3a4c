"""Log context for OAuth components.

Only ``namespace`` and ``correlation_id`` are ever attached to records, so a
token or verifier cannot ride along by accident.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Add the auth context without overriding call-site extras."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        extra = kwargs.get("extra") or {}
        kwargs["extra"] = {**self.extra, **extra}
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "jcard-auth.oauth",
    namespace: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter carrying the non-sensitive auth context."""
    context = {"namespace": namespace, "correlation_id": correlation_id}
    return _AuthLoggerAdapter(
        logging.getLogger(base_logger_name),
        {k: v for k, v in context.items() if v is not None},
    )
