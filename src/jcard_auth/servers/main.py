"""Console entry point: serve the login app with uvicorn."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

import uvicorn

from jcard_auth.oauth.models import OAuthConfig
from jcard_auth.oauth.store import DiskTokenStore
from jcard_auth.servers.app import create_app
from jcard_auth.utils.logging import setup_logging

logger = logging.getLogger("jcard-auth.server.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jcard-auth",
        description="Serve the Spotify login flow and playlist lookups for jcard.",
    )
    parser.add_argument("--host", default=os.getenv("JCARD_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("JCARD_PORT", "8000")))
    parser.add_argument(
        "--storage-dir",
        default=None,
        help="Directory for the session file (default: $JCARD_AUTH_STORAGE_DIR or ~/.jcard-auth)",
    )
    parser.add_argument(
        "--require-fresh",
        action="store_true",
        help="Treat an expired access token as logged out",
    )
    parser.add_argument("--log-level", default=os.getenv("JCARD_LOG_LEVEL", "INFO"))
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    setup_logging(args.log_level)

    config = OAuthConfig.from_env()
    store = DiskTokenStore(args.storage_dir)
    app = create_app(config, store, require_fresh=args.require_fresh)

    logger.info(
        "Starting jcard-auth on http://%s:%s (redirect_uri=%s)",
        args.host,
        args.port,
        config.redirect_uri,
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
    main()
