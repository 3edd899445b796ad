"""
Process entrypoint: serve the API with uvicorn and report how it stopped.

uvicorn installs the SIGINT/SIGTERM handlers. On a signal it stops
accepting connections and waits up to ``SHUTDOWN_TIMEOUT`` seconds for
in-flight requests, cancelling whatever is still running after that.

Exit status: 0 on a clean shutdown, 1 when startup failed (e.g. the
database never came up) or requests were abandoned at the deadline.
"""
from __future__ import annotations

import sys

import structlog
import uvicorn
from fastapi import FastAPI

from payments_service.api.main import create_app
from payments_service.shared.config import Settings
from payments_service.shared.logging import configure_logging

logger = structlog.get_logger(__name__)


def build_server(app: FastAPI, settings: Settings) -> uvicorn.Server:
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="on",
        timeout_graceful_shutdown=settings.shutdown_timeout,
        log_config=None,
        access_log=False,
    )
    return uvicorn.Server(config)


def run(settings: Settings | None = None) -> int:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = create_app(settings)
    server = build_server(app, settings)
    logger.info("server_starting", host=settings.host, port=settings.port)
    server.run()

    if not server.started:
        logger.error("server_startup_failed")
        return 1

    inflight = app.state.inflight
    if inflight.abandoned:
        logger.error(
            "server_forced_shutdown",
            abandoned=inflight.abandoned,
            timeout=settings.shutdown_timeout,
        )
        return 1

    logger.info("server_exiting", completed=inflight.completed)
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
