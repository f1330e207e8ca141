"""scanner-operator entry point.

Usage:
    scanner-operator run [--namespace NS ...]    Run the operator and the API server
    scanner-operator serve [--host H] [--port P] Run only the API server
    scanner-operator --version                   Show version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from scanner_operator import __version__
from scanner_operator.config import Settings
from scanner_operator.errors import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scanner-operator",
        description="Scan every container image running in a namespace, one job at a time.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"scanner-operator {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run the operator and the API server")
    run.add_argument(
        "--namespace",
        action="append",
        default=[],
        help="Namespace to watch (repeatable, default: all namespaces)",
    )

    serve = commands.add_parser("serve", help="Run only the API server")
    serve.add_argument("--host", default=None, help="Bind host (default: HTTP_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: HTTP_PORT)")
    return parser


def _init_runtime(settings: Settings) -> None:
    """Build the process singletons; failure here is fatal."""
    from scanner_operator.runtime import get_runtime

    try:
        get_runtime(settings)
    except (ConfigurationError, StorageError) as e:
        logger.error("Initialization failed: %s", e)
        sys.exit(1)


def _uvicorn_server(settings: Settings, host: str, port: int):
    import uvicorn

    from scanner_operator.app import create_app

    config = uvicorn.Config(create_app(settings), host=host, port=port, log_config=None)
    return uvicorn.Server(config)


async def _run_operator(settings: Settings, namespaces: list[str]) -> None:
    import kopf

    import scanner_operator.handlers  # noqa: F401  (registers kopf handlers)

    server = _uvicorn_server(settings, settings.http_host, settings.http_port)
    logger.info("Starting HTTP server on %s:%d", settings.http_host, settings.http_port)
    await asyncio.gather(
        server.serve(),
        kopf.operator(
            standalone=True,
            clusterwide=not namespaces,
            namespaces=namespaces,
        ),
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = _build_parser().parse_args(argv)
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _init_runtime(settings)

    if args.command == "serve":
        host = args.host or settings.http_host
        port = args.port or settings.http_port
        logger.info("Starting HTTP server on %s:%d", host, port)
        asyncio.run(_uvicorn_server(settings, host, port).serve())
        return

    asyncio.run(_run_operator(settings, args.namespace))


if __name__ == "__main__":
    main()
