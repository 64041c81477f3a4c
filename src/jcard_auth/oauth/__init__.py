"""OAuth 2.0 Authorization Code + PKCE core.

This namespace hosts the **HTTP-agnostic** building blocks of the login flow.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
pkce
    Proof-Key for Code Exchange helpers.
models
    Immutable dataclasses for credentials, grants and client configuration.
store
    Session persistence (access/refresh token, expiry, pending verifier).
authorization
    Authorization request URL construction.
exchange
    Code-for-token and refresh-token exchanges.
callback
    One-shot redirect handler state machine.
session
    Read-side "is the user logged in?" checks.
errors
    Exception types used by the OAuth logic.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .pkce import generate_code_verifier, code_challenge_s256  # noqa: F401
from .models import Credential, OAuthConfig, TokenGrant  # noqa: F401
from .errors import (  # noqa: F401
    MissingVerifierError,
    NoAccessTokenError,
    OAuthFlowError,
    TokenExchangeError,
)
from .store import DiskTokenStore, MemoryTokenStore, TokenStore, default_store  # noqa: F401
from .authorization import build_authorization_url  # noqa: F401
from .exchange import TokenExchangeClient  # noqa: F401
from .callback import CallbackHandler, CallbackResult, CallbackState, strip_oauth_params  # noqa: F401
from .session import SessionQuery  # noqa: F401
from .log_utils import get_auth_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # pkce
    "generate_code_verifier",
    "code_challenge_s256",
    # models
    "Credential",
    "OAuthConfig",
    "TokenGrant",
    # errors
    "OAuthFlowError",
    "MissingVerifierError",
    "TokenExchangeError",
    "NoAccessTokenError",
    # store
    "TokenStore",
    "MemoryTokenStore",
    "DiskTokenStore",
    "default_store",
    # flow
    "build_authorization_url",
    "TokenExchangeClient",
    "CallbackHandler",
    "CallbackResult",
    "CallbackState",
    "strip_oauth_params",
    "SessionQuery",
    # logging helpers
    "get_auth_logger",
]
