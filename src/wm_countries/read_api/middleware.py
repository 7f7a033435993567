from __future__ import annotations

import asyncio
from typing import Any

import structlog

from wm_countries.utils.logging import get_logger


logger = get_logger(component="read_api")


class RequestTimeoutMiddleware:
    """
    Wall-clock bound for a whole HTTP request.

    On expiry the handler task (and any in-flight upstream call) is cancelled and the
    client gets 408, unless the response has already started streaming.
    """

    def __init__(self, app: Any, *, timeout_seconds: float) -> None:
        self.app = app
        self.timeout_seconds = float(timeout_seconds)

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        with structlog.contextvars.bound_contextvars(method=scope.get("method"), path=scope.get("path")):
            try:
                await asyncio.wait_for(self.app(scope, receive, send_wrapper), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("request_timed_out", timeout_seconds=self.timeout_seconds)
                if started:
                    raise
                body = b"request timed out"
                await send(
                    {
                        "type": "http.response.start",
                        "status": 408,
                        "headers": [
                            (b"content-type", b"text/plain; charset=utf-8"),
                            (b"content-length", str(len(body)).encode("ascii")),
                        ],
                    }
                )
                await send({"type": "http.response.body", "body": body})
