"""Spotify login (Authorization Code + PKCE) and playlist access for jcard."""

__version__ = "0.1.0"
