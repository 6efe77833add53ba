import logging
import os

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from festflow_shared import (
    RequestIDMiddleware,
    add_standard_health,
    build_lifespan,
    configure_cors,
    install_error_handlers,
    setup_json_logging,
)

from . import auth, catalog, orders
from .config import ALLOWED_ORIGINS, ENABLE_DOCS, SEED_DEMO
from .db import Base, engine
from .realtime import hub
from .seed import seed_if_empty

_log = logging.getLogger("festflow")


def on_startup():
    Base.metadata.create_all(engine)
    if SEED_DEMO and seed_if_empty():
        _log.info("seeded empty database with demo data")


app = FastAPI(
    title="FestFlow API",
    version="0.1.0",
    lifespan=build_lifespan(startup=[on_startup]),
    docs_url="/docs" if ENABLE_DOCS else None,
    redoc_url=None,
    openapi_url="/openapi.json" if ENABLE_DOCS else None,
)
setup_json_logging(os.getenv("LOG_LEVEL", "INFO"))
app.add_middleware(RequestIDMiddleware)
configure_cors(app, ALLOWED_ORIGINS)
install_error_handlers(app)
add_standard_health(app, path="/api/health", extra=lambda: {"ws_clients": hub.clients_count()})

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(orders.router)


@app.websocket("/ws")
async def ws_events(ws: WebSocket):
    await hub.connect(ws)
    try:
        while True:
            # Clients only listen; inbound frames keep the socket alive.
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(ws)
        _log.info("ws client disconnected", extra={"ctx": {"ws_clients": hub.clients_count()}})
