"""Browser-facing endpoints for the Spotify login flow.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate to the :mod:`jcard_auth.oauth` core or :mod:`jcard_auth.resources`.
3. Return an appropriate Starlette ``Response`` type.

The redirect target registered with Spotify (``redirect_uri``) is served by
the landing route: it runs a fresh :class:`CallbackHandler` per request, so a
reload after login finds no ``code`` and simply shows the page.

SECURITY NOTE
-------------
No raw secrets (codes, verifiers, access / refresh tokens) are ever logged or
returned in a response body.
"""

from __future__ import annotations

import html
import logging
from typing import Callable
from urllib.parse import urlsplit

import requests
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from jcard_auth.oauth.authorization import build_authorization_url
from jcard_auth.oauth.callback import CallbackHandler, CallbackState
from jcard_auth.oauth.errors import NoAccessTokenError
from jcard_auth.oauth.exchange import TokenExchangeClient
from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.session import SessionQuery
from jcard_auth.oauth.store import TokenStore, default_store
from jcard_auth.resources import SpotifyClient, split_sides
from jcard_auth.servers.correlation import CorrelationIdMiddleware

_LOG = logging.getLogger("jcard-auth.server")


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{html.escape(title)}</title></head><body><h1>{html.escape(title)}</h1>"
        f"<p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "-")


def create_app(
    config: OAuthConfig | None = None,
    store: TokenStore | None = None,
    *,
    http_session: requests.Session | None = None,
    require_fresh: bool = False,
    on_session_change: Callable[[], None] | None = None,
) -> Starlette:
    """Build the Starlette application wired to *config* and *store*."""
    config = config or OAuthConfig.from_env()
    store = store or default_store()
    exchange_client = TokenExchangeClient(config, store, session=http_session)
    spotify = SpotifyClient(store, config, session=http_session)
    session_query = SessionQuery(store, require_fresh=require_fresh)
    landing_path = urlsplit(config.redirect_uri).path or "/"

    # ----- GET <redirect_uri path> ---------------------------------------- #
    async def landing(request: Request) -> Response:
        handler = CallbackHandler(
            exchange_client,
            on_session_change=on_session_change,
            correlation_id=_correlation_id(request),
        )
        result = await run_in_threadpool(handler.handle, str(request.url))

        if result.state is CallbackState.AUTHENTICATED:
            # drop code from the address bar so reload/back cannot replay it
            return RedirectResponse(result.clean_url, status_code=303)
        if result.state is CallbackState.FAILED:
            return _html_page("Login failed", html.escape(str(result.error)), 400)

        if await run_in_threadpool(session_query.is_authenticated):
            return _html_page(
                "Logged in",
                "<form method='post' action='/auth/logout'><button>Log out</button></form>",
            )
        return _html_page("Not logged in", "<a href='/auth/login'>Log in with Spotify</a>")

    # ----- GET /auth/login ------------------------------------------------ #
    async def login(request: Request) -> Response:
        authorize_url = await run_in_threadpool(build_authorization_url, config, store)
        _LOG.info("Login started correlation_id=%s", _correlation_id(request))

        fmt_param = request.query_params.get("format")
        accept_header = (request.headers.get("accept") or "").lower()
        if fmt_param == "json" or (
            fmt_param != "redirect" and "application/json" in accept_header
        ):
            return JSONResponse({"authorize_url": authorize_url})
        # 303 See Other for GET safety across methods
        return RedirectResponse(authorize_url, status_code=303)

    # ----- POST /auth/logout ---------------------------------------------- #
    async def logout(request: Request) -> Response:
        await run_in_threadpool(store.clear)
        _LOG.info("Logged out correlation_id=%s", _correlation_id(request))
        if on_session_change is not None:
            on_session_change()
        if "text/html" in (request.headers.get("accept") or "").lower():
            return RedirectResponse(landing_path, status_code=303)
        return Response(status_code=204)

    # ----- GET /auth/status ----------------------------------------------- #
    async def status(request: Request) -> Response:
        return JSONResponse(await run_in_threadpool(session_query.status))

    # ----- GET /api/playlists --------------------------------------------- #
    async def playlists(request: Request) -> Response:
        try:
            items = await run_in_threadpool(spotify.get_playlists)
        except NoAccessTokenError as exc:
            return JSONResponse(exc.to_payload(), status_code=401)
        except requests.HTTPError as exc:
            return _upstream_error(exc)
        return JSONResponse(
            {"items": [{"id": p.get("id"), "name": p.get("name")} for p in items]}
        )

    # ----- GET /api/playlists/{playlist_id}/sides ------------------------- #
    async def playlist_sides(request: Request) -> Response:
        playlist_id = request.path_params["playlist_id"]
        try:
            playlist = await run_in_threadpool(spotify.get_playlist, playlist_id)
        except NoAccessTokenError as exc:
            return JSONResponse(exc.to_payload(), status_code=401)
        except requests.HTTPError as exc:
            return _upstream_error(exc)
        sides = split_sides(playlist)
        return JSONResponse(
            {
                "side_a": sides.side_a,
                "side_b": sides.side_b,
                "cover_url": sides.cover_url,
            }
        )

    routes = [
        Route("/auth/login", login, methods=["GET"]),
        Route("/auth/logout", logout, methods=["POST"]),
        Route("/auth/status", status, methods=["GET"]),
        Route("/api/playlists", playlists, methods=["GET"]),
        Route("/api/playlists/{playlist_id}/sides", playlist_sides, methods=["GET"]),
        Route(landing_path, landing, methods=["GET"]),
    ]
    app = Starlette(routes=routes, middleware=[Middleware(CorrelationIdMiddleware)])
    app.state.config = config
    app.state.store = store
    return app


def _upstream_error(exc: requests.HTTPError) -> JSONResponse:
    upstream = exc.response.status_code if exc.response is not None else None
    _LOG.warning("Spotify API error status=%s", upstream)
    return JSONResponse(
        {"error": "upstream_error", "status_code": upstream},
        status_code=502,
    )
