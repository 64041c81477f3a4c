"""PKCE (Proof Key for Code Exchange) helpers.

RFC 7636 defines PKCE to protect public OAuth clients.  The mechanism relies on
a *code verifier* (random high-entropy string) generated at the beginning of
the flow and a *code challenge* derived from that verifier that is sent to the
authorization endpoint.

Verifiers are drawn from the 62 alphanumeric characters only, which is a
subset of the RFC's unreserved set and survives any URL or form encoding
untouched.  Only the S256 transformation is implemented.

This module intentionally performs **no logging** of verifiers or challenges.
"""

from __future__ import annotations

import base64
import secrets
import string
from hashlib import sha256
from typing import Final

# RFC-7636 §4.1 mandates the verifier length between 43 and 128 characters.
VERIFIER_MIN_LEN: Final[int] = 43
VERIFIER_MAX_LEN: Final[int] = 128
_VERIFIER_LEN: Final[int] = 64
_ALLOWED_CHARS: Final[str] = string.ascii_uppercase + string.ascii_lowercase + string.digits


def _random_alphanumeric(length: int) -> str:
    """Return a cryptographically secure alphanumeric string."""
    return "".join(secrets.choice(_ALLOWED_CHARS) for _ in range(length))


def generate_code_verifier(length: int = _VERIFIER_LEN) -> str:
    """Generate a high-entropy code verifier.

    Parameters
    ----------
    length:
        Desired length between 43 and 128 characters (default 64).

    Returns
    -------
    str
        The generated code verifier.
    """
    if not VERIFIER_MIN_LEN <= length <= VERIFIER_MAX_LEN:
        raise ValueError("code verifier length must be 43-128 characters")
    return _random_alphanumeric(length)


def code_challenge_s256(verifier: str) -> str:
    """Compute the *S256* PKCE code challenge for a given verifier.

    Parameters
    ----------
    verifier:
        The code verifier string.

    Returns
    -------
    str
        Base64url-encoded SHA-256 hash of the UTF-8 bytes, without padding.
    """
    digest = sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
