"""
Request/response logging middleware.

One request goes through three log points:

    incoming   info   "GET /users incoming client=127.0.0.1 user_agent=curl/8.0"
    completed  info   "GET /users status=200 duration_ms=12.3"
    failed     error  "GET /users status=500 duration_ms=4.1 error=..."

With verbose logging on, sanitized request and response bodies are logged at
debug level as well; bodies over `max_body_bytes` are logged as a size marker
only. Paths in `excluded_paths` (exact match) are never logged.
Only HTTP traffic is handled; websocket and lifespan scopes pass through.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Collection

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core import config

from .sanitizer import sanitize_object

logger = logging.getLogger(__name__)

SECRET_FIELDS = frozenset(
    {
        "password",
        "password_confirmation",
        "password_hash",
        "token",
        "access_token",
        "refresh_token",
        "secret",
        "authorization",
    }
)


@dataclass
class RequestContext:
    """Per-request state, created when the request arrives."""

    method: str
    path: str
    started_at: float = field(default_factory=time.perf_counter)
    status_code: int | None = None

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started_at) * 1000, 1)


def format_body(raw: bytes) -> str:
    """
    Render a body for the log: JSON with secrets masked, or a short placeholder.
    """
    if not raw:
        return "empty"
    try:
        parsed = json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        return f"<non-json body: {len(raw)} bytes>"
    sanitized = sanitize_object(parsed, SECRET_FIELDS)
    if isinstance(sanitized, list):
        sanitized = [sanitize_object(item, SECRET_FIELDS) for item in sanitized]
    return json.dumps(sanitized, ensure_ascii=False, default=str)


class BodyBuffer:
    """Collects body chunks for the log, up to `limit` bytes."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.size = 0
        self.truncated = False
        self._chunks: list[bytes] = []

    def append(self, chunk: bytes) -> None:
        self.size += len(chunk)
        if self.truncated:
            return
        if self.size > self.limit:
            self.truncated = True
            self._chunks.clear()
            return
        self._chunks.append(chunk)

    def render(self) -> str:
        if self.truncated:
            # A partial body cannot be parsed or sanitized.
            return f"<truncated body: more than {self.limit} bytes>"
        return format_body(b"".join(self._chunks))


def _header(scope: Scope, name: bytes) -> str:
    for key, value in scope.get("headers") or []:
        if key.lower() == name:
            return value.decode("latin-1")
    return "unknown"


async def _read_body(receive: Receive, buffer: BodyBuffer) -> list[Message]:
    """
    Read request messages into `buffer` until the body ends or overflows it.

    Returns the messages consumed so they can be replayed; the rest of an
    oversized body is left unread.
    """
    messages: list[Message] = []
    while True:
        message = await receive()
        messages.append(message)
        if message["type"] != "http.request":
            break
        buffer.append(message.get("body", b""))
        if buffer.truncated or not message.get("more_body", False):
            break
    return messages


class RequestLoggingMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        verbose: bool | None = None,
        excluded_paths: Collection[str] | None = None,
        max_body_bytes: int | None = None,
    ) -> None:
        self.app = app
        self.max_body_bytes = (
            config.request_log_max_body_bytes() if max_body_bytes is None else max_body_bytes
        )
        self.verbose = config.verbose_request_logging() if verbose is None else verbose
        self.excluded_paths = frozenset(
            config.request_log_exclude_paths() if excluded_paths is None else excluded_paths
        )

    def is_excluded(self, path: str) -> bool:
        return path in self.excluded_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if self.is_excluded(path):
            await self.app(scope, receive, send)
            return

        ctx = RequestContext(method=scope.get("method", "GET"), path=path)
        scope.setdefault("state", {})["request_context"] = ctx
        await self._handle(ctx, scope, receive, send)

    async def _handle(self, ctx: RequestContext, scope: Scope, receive: Receive, send: Send) -> None:
        client = scope.get("client")
        logger.info(
            "%s %s incoming client=%s user_agent=%s",
            ctx.method,
            ctx.path,
            client[0] if client else "unknown",
            _header(scope, b"user-agent"),
        )

        if self.verbose:
            receive = await self._log_request_body(ctx, receive)

        response_body = BodyBuffer(self.max_body_bytes)

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                ctx.status_code = int(message["status"])
            elif message["type"] == "http.response.body" and self.verbose:
                response_body.append(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            logger.error(
                "%s %s status=%s duration_ms=%s error=%s",
                ctx.method,
                ctx.path,
                getattr(exc, "status_code", None) or 500,
                ctx.elapsed_ms(),
                str(exc) or type(exc).__name__,
            )
            raise

        logger.info(
            "%s %s status=%s duration_ms=%s",
            ctx.method,
            ctx.path,
            ctx.status_code,
            ctx.elapsed_ms(),
        )
        if self.verbose:
            logger.debug(
                "%s %s response_body=%s",
                ctx.method,
                ctx.path,
                response_body.render(),
            )

    async def _log_request_body(self, ctx: RequestContext, receive: Receive) -> Receive:
        """
        Read the request body up to the log cap, log it, and hand back a
        receive that replays what was read before continuing with the rest.
        """
        request_body = BodyBuffer(self.max_body_bytes)
        buffered = await _read_body(receive, request_body)
        logger.debug("%s %s request_body=%s", ctx.method, ctx.path, request_body.render())

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        return replay
