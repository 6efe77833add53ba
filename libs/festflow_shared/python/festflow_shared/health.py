import os
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI


def add_standard_health(
    app: FastAPI,
    path: str = "/health",
    env_key: str = "ENV",
    extra: Optional[Callable[[], Dict[str, Any]]] = None,
):
    """
    Register a GET health route on `app`.

    `extra` may return additional fields (e.g. connected websocket clients)
    merged into the response body.
    """

    @app.get(path, include_in_schema=False)
    def _health():
        body: Dict[str, Any] = {
            "ok": True,
            "status": "ok",
            "env": os.getenv(env_key, "dev"),
            "service": app.title,
            "version": getattr(app, "version", None),
        }
        if extra is not None:
            body.update(extra())
        return body
