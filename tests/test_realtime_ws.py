from __future__ import annotations

import asyncio
import time

from apps.festflow.app.realtime import RealtimeHub, _Client
from conftest import place_order


def test_ws_hello_then_db_change_on_order(app, as_user, catalog):
    waiter = as_user("Waiter")
    with waiter.websocket_connect("/ws") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "hello"
        assert isinstance(hello["ts"], int)

        assert waiter.get("/api/health").json()["ws_clients"] == 1

        od = place_order(waiter, catalog, "Burger")
        event = ws.receive_json()
        assert event["type"] == "db.change"
        assert event["entity"] == "order"
        assert event["id"] == od["id"]


def test_ws_line_status_and_catalog_changes(as_user, catalog):
    waiter = as_user("Waiter")
    kitchen = as_user("Kitchen")
    admin = as_user("Admin")
    od = place_order(waiter, catalog, "Burger")
    line_id = od["lines"][0]["id"]

    with kitchen.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "hello"

        kitchen.patch(f"/api/order-lines/{line_id}/status", json={"status": "DONE"})
        event = ws.receive_json()
        assert (event["entity"], event["id"]) == ("order_line", line_id)

        resp = admin.post("/api/tables", json={"name": "Table 9"})
        event = ws.receive_json()
        assert (event["entity"], event["id"]) == ("table", resp.json()["id"])


def test_failed_request_does_not_broadcast(as_user, catalog):
    waiter = as_user("Waiter")
    with waiter.websocket_connect("/ws") as ws:
        ws.receive_json()
        bad = waiter.post("/api/orders", json={"table_id": "missing", "lines": [{"menu_item_id": "x", "qty": 1}]})
        assert bad.status_code == 400
        place_order(waiter, catalog, "Beer")
        # The first event seen is the successful order, not the rejected one.
        assert ws.receive_json()["entity"] == "order"


def test_disconnect_unregisters_client(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert client.get("/api/health").json()["ws_clients"] == 1
    # The server side notices the close asynchronously.
    for _ in range(50):
        if client.get("/api/health").json()["ws_clients"] == 0:
            break
        time.sleep(0.02)
    assert client.get("/api/health").json()["ws_clients"] == 0


class _BrokenSocket:
    def __init__(self):
        self.attempts = 0

    async def send_text(self, message: str) -> None:
        self.attempts += 1
        raise RuntimeError("socket went away")


class _RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, message: str) -> None:
        self.sent.append(message)


def test_failed_send_drops_only_that_client():
    local_hub = RealtimeHub()
    broken = _BrokenSocket()
    healthy = _RecordingSocket()

    async def run():
        loop = asyncio.get_running_loop()
        local_hub._clients.extend([_Client(ws=broken, loop=loop), _Client(ws=healthy, loop=loop)])
        local_hub.publish("order", "o1")
        for _ in range(5):
            await asyncio.sleep(0)

    asyncio.run(run())
    assert broken.attempts == 1
    assert len(healthy.sent) == 1
    assert local_hub.clients_count() == 1
    assert not local_hub._tasks


def test_client_on_closed_loop_is_dropped():
    local_hub = RealtimeHub()
    loop = asyncio.new_event_loop()
    loop.close()
    local_hub._clients.append(_Client(ws=_RecordingSocket(), loop=loop))

    local_hub.publish("table", "t1")
    assert local_hub.clients_count() == 0
