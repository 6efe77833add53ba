from __future__ import annotations

from fastapi.middleware.cors import CORSMiddleware

# Vite dev server of the role boards.
DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def parse_origins(allowed: str | None) -> list[str]:
    origins = [o.strip() for o in (allowed or "").split(",") if o.strip()]
    return origins or list(DEV_ORIGINS)


def configure_cors(app, allowed: str | None):
    origins = parse_origins(allowed)

    if "*" in origins:
        # Wildcard origins must not be combined with the session cookie.
        origins = ["*"]
        allow_credentials = False
    else:
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
