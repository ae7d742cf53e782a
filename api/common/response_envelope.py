"""
Response envelope middleware.

Successful JSON responses are rewrapped into one shape:

    {"data": ..., "meta": {...}, "message": "...", "statusCode": 200, "success": true}

- a body that already has a `success` key is passed through as is
- `meta` is lifted out of paginated results (`{"data": [...], "meta": {...}}`)
- a top-level `message` is lifted out; a body that is only a message has `data: null`
- `meta` and `message` are omitted when the body has neither

Error responses are rendered by `common.errors` and are never wrapped; neither
are non-JSON or empty responses.
"""

from __future__ import annotations

import json
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


def wrap_payload(payload: Any, status_code: int) -> Any:
    if isinstance(payload, dict) and "success" in payload:
        return payload

    body: dict[str, Any] = {"data": payload}
    if isinstance(payload, dict):
        if "meta" in payload:
            body["meta"] = payload["meta"]
            if "data" in payload:
                body["data"] = payload["data"]
            else:
                rest = {k: v for (k, v) in payload.items() if k != "meta"}
                body["data"] = rest or None
        if "message" in payload:
            body["message"] = payload["message"]
            if len(payload) == 1:
                body["data"] = None

    body["statusCode"] = status_code
    body["success"] = 200 <= status_code < 300
    return body


def _is_json(headers: MutableHeaders) -> bool:
    content_type = headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


class ResponseEnvelopeMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start: Message | None = None
        chunks: list[bytes] = []

        async def send_wrapper(message: Message) -> None:
            nonlocal start
            if message["type"] == "http.response.start":
                headers = MutableHeaders(raw=list(message.get("headers", [])))
                if 200 <= message["status"] < 300 and _is_json(headers):
                    start = message
                    return
                await send(message)
                return

            if message["type"] != "http.response.body" or start is None:
                await send(message)
                return

            chunks.append(message.get("body", b""))
            if message.get("more_body", False):
                return
            await self._send_wrapped(start, b"".join(chunks), send)

        await self.app(scope, receive, send_wrapper)

    async def _send_wrapped(self, start: Message, raw: bytes, send: Send) -> None:
        headers = MutableHeaders(raw=list(start.get("headers", [])))
        if raw:
            try:
                payload = json.loads(raw)
            except ValueError:
                # Mislabelled body; send it untouched.
                pass
            else:
                raw = json.dumps(
                    wrap_payload(payload, start["status"]),
                    ensure_ascii=False,
                    separators=(",", ":"),
                ).encode("utf-8")
        headers["content-length"] = str(len(raw))
        await send({**start, "headers": headers.raw})
        await send({"type": "http.response.body", "body": raw, "more_body": False})
