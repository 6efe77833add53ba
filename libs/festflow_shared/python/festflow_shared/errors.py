from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .request_id import get_request_id


def is_prod_env() -> bool:
    env = (os.getenv("ENV") or "dev").strip().lower()
    return env in ("prod", "production", "staging")


def _scrubbed(status_code: int) -> JSONResponse:
    payload: dict[str, Any] = {"detail": "internal error"}
    rid = get_request_id()
    if rid:
        payload["request_id"] = rid
    return JSONResponse(status_code=status_code, content=payload)


def install_error_handlers(app: FastAPI, logger_name: str = "festflow.errors") -> None:
    """
    Uniform `{"detail": ...}` error bodies. 5xx details are replaced by a
    generic message plus the request id in prod/staging.
    """
    log = logging.getLogger(logger_name)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        if is_prod_env() and exc.status_code >= 500:
            return _scrubbed(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        log.exception("unhandled exception", extra={"ctx": {"path": request.url.path}})
        if is_prod_env():
            return _scrubbed(500)
        payload: dict[str, Any] = {"detail": str(exc)}
        rid = get_request_id()
        if rid:
            payload["request_id"] = rid
        return JSONResponse(status_code=500, content=payload)
