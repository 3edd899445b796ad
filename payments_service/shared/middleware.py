"""Request logging and in-flight request accounting."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log client address, method, path, status and latency for each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "http_request",
            client_ip=request.client.host if request.client else None,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=round(latency_ms, 2),
        )
        return response


@dataclass
class InFlightRequests:
    """Counts requests currently being served and those cut off by shutdown."""

    active: int = 0
    completed: int = 0
    abandoned: int = 0


class InFlightMiddleware:
    """
    Pure ASGI middleware feeding an ``InFlightRequests`` tracker.

    A request whose task is cancelled (uvicorn does this to requests still
    running when the graceful-shutdown timeout expires) counts as abandoned.
    """

    def __init__(self, app: ASGIApp, tracker: InFlightRequests) -> None:
        self.app = app
        self.tracker = tracker

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        self.tracker.active += 1
        try:
            await self.app(scope, receive, send)
        except asyncio.CancelledError:
            self.tracker.abandoned += 1
            logger.warning(
                "request_abandoned",
                method=scope.get("method"),
                path=scope.get("path"),
            )
            raise
        else:
            self.tracker.completed += 1
        finally:
            self.tracker.active -= 1
