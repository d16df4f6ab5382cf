"""Logging setup and HTTP request logging middleware."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from starlette.types import ASGIApp, Message, Receive, Scope, Send

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
REDACTED = "***"

# JSON keys whose values never reach the log
_SENSITIVE_KEYS = frozenset({"password", "confirm_password", "confirmpassword", "token"})

logger = logging.getLogger("ems.request")


def configure_logging(level: str = "info") -> None:
    """Apply the service log format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def redact(payload: Any) -> Any:
    """Return *payload* with sensitive values masked, recursively."""
    if isinstance(payload, dict):
        return {
            k: REDACTED if k.lower() in _SENSITIVE_KEYS else redact(v)
            for k, v in payload.items()
        }
    if isinstance(payload, list):
        return [redact(v) for v in payload]
    return payload


def _body_for_log(raw: bytes) -> str | None:
    if not raw:
        return None
    try:
        return json.dumps(redact(json.loads(raw)))
    except (ValueError, UnicodeDecodeError):
        return f"<{len(raw)} bytes>"


class RequestLoggingMiddleware:
    """Log method, path, status and duration of every HTTP request.

    JSON request bodies are logged at DEBUG with password fields redacted.
    The body is observed as it streams to the app, never consumed.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        chunks: list[bytes] = []
        status_code = 500

        async def _receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                chunks.append(message.get("body", b""))
            return message

        async def _send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, _receive, _send)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s -> %s (%.1f ms)",
                scope["method"], scope["path"], status_code, elapsed_ms,
            )
            if logger.isEnabledFor(logging.DEBUG):
                body = _body_for_log(b"".join(chunks))
                if body:
                    logger.debug("%s %s body=%s", scope["method"], scope["path"], body)
