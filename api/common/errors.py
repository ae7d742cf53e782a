"""
Domain errors and the FastAPI handlers that render them.

Every error response has the same shape:

    {"statusCode": 404, "message": "...", "error": "Not Found",
     "timestamp": "2024-01-01T00:00:00+00:00", "path": "/users/..."}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    def __init__(self, id: Any, entity: str = "Entity") -> None:
        self.id = id
        self.entity = entity
        super().__init__(f"{entity} with ID {id} not found")


class ConflictError(RuntimeError):
    pass


def error_name(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return f"HTTP Error {status_code}"


def error_body(request: Request, status_code: int, message: Any) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "message": message,
        "error": error_name(status_code),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }


def _respond(request: Request, status_code: int, message: Any, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(request, status_code, message),
        headers=headers,
    )


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _respond(request, status.HTTP_404_NOT_FOUND, str(exc))


async def _conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return _respond(request, status.HTTP_409_CONFLICT, str(exc) or "Conflict.")


async def _unique_violation_handler(request: Request, exc: asyncpg.UniqueViolationError) -> JSONResponse:
    logger.warning("unique_violation path=%s constraint=%s", request.url.path, exc.constraint_name)
    return _respond(request, status.HTTP_409_CONFLICT, "A record with this key already exists.")


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _respond(request, exc.status_code, exc.detail, headers=getattr(exc, "headers", None))


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = error_body(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error occurred.")
    body["details"] = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body)


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal server error occurred.")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(ConflictError, _conflict_handler)
    app.add_exception_handler(asyncpg.UniqueViolationError, _unique_violation_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    # Starlette runs this one outside the user middleware stack, after request
    # logging has already seen the exception.
    app.add_exception_handler(Exception, _unhandled_handler)
