"""HTTP surface (Starlette) for the login flow and playlist lookups."""

from .app import create_app

__all__ = ["create_app"]
