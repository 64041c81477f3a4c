"""Authorization request construction.

Builds the URL the user agent is sent to in order to start an Authorization
Code + PKCE attempt.  Starting an attempt stores a fresh verifier in the
:class:`~jcard_auth.oauth.store.TokenStore`, overwriting any verifier left
behind by an abandoned attempt.  Navigating to the URL is the caller's job.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.pkce import code_challenge_s256, generate_code_verifier
from jcard_auth.oauth.store import TokenStore

_LOG = logging.getLogger("jcard-auth.oauth.authorization")

VERIFIER_LENGTH = 64


def build_authorization_url(config: OAuthConfig, store: TokenStore) -> str:
    """Return the authorize URL for a new attempt and remember its verifier."""
    code_verifier = generate_code_verifier(VERIFIER_LENGTH)
    store.set_pending_verifier(code_verifier)
    challenge = code_challenge_s256(code_verifier)

    # exactly these parameters, in this order
    query_params: dict[str, str] = {
        "response_type": "code",
        "client_id": config.client_id,
        "scope": config.scope,
        "redirect_uri": config.redirect_uri,
        "code_challenge_method": "S256",
        "code_challenge": challenge,
    }
    url = f"{config.authorization_endpoint}?{urlencode(query_params)}"
    _LOG.debug(
        "Built authorize URL client_id=%s scopes=%s",
        config.client_id,
        config.scope,
    )
    return url
