"""Command-line entry points: the expiry sweep job and the API server."""

import argparse
import logging
import sys
from collections.abc import Sequence

from .config import Settings
from .exceptions import StorageUnavailableError
from .log import configure_logging
from .manager import KeyManager

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idempotency-keys",
        description="Idempotency key maintenance and API server",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("sweep", help="Delete reserved keys whose window has elapsed")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: settings)")

    return parser


def sweep(settings: Settings) -> int:
    try:
        deleted = KeyManager.from_settings(settings).sweep()
    except StorageUnavailableError:
        logger.exception("Sweep failed")
        return 1

    print(f"Deleted expired keys: {deleted}")
    return 0


def serve(settings: Settings, host: str | None, port: int | None) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Sequence[str] | None = None, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or Settings()
    configure_logging(settings.log_level)

    if args.command == "sweep":
        return sweep(settings)
    return serve(settings, args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
