import os
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

os.environ["ENV"] = "test"
os.environ["FESTFLOW_DB_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("FESTFLOW_SEED_DEMO", "0")

from sqlalchemy.orm import Session  # noqa: E402

from apps.festflow.app import db  # noqa: E402
from apps.festflow.app.auth import reset_login_rate_limits  # noqa: E402
from apps.festflow.app.models import MenuCategory, MenuItem, Station, Table, User  # noqa: E402
from apps.festflow.app.realtime import hub  # noqa: E402
from apps.festflow.app.security import hash_pin  # noqa: E402

# name -> (roles, pin)
STAFF: Dict[str, tuple] = {
    "Waiter": (["WAITER"], "1111"),
    "Mia": (["WAITER", "CASHIER"], "2222"),
    "Kitchen": (["KITCHEN"], "3333"),
    "Bar": (["BAR"], "4444"),
    "Cashier": (["CASHIER"], "5555"),
    "Admin": (["ADMIN"], "0000"),
}


@pytest.fixture(scope="session")
def app():
    """
    Import the FestFlow FastAPI app once per test session.
    """
    from apps.festflow.app.main import app as festflow_app

    return festflow_app


@pytest.fixture(autouse=True)
def _fresh_state():
    """
    Fresh schema, no sockets and no login failures for every test.
    """
    db.Base.metadata.drop_all(db.engine)
    db.Base.metadata.create_all(db.engine)
    hub.reset()
    reset_login_rate_limits()
    yield
    hub.reset()


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def staff() -> Dict[str, str]:
    """Create the test staff; returns name -> user id."""
    ids: Dict[str, str] = {}
    with Session(db.engine) as s:
        for name, (roles, pin) in STAFF.items():
            user = User(name=name, pin_hash=hash_pin(pin))
            user.set_roles(roles)
            s.add(user)
            s.flush()
            ids[name] = user.id
        s.commit()
    return ids


@pytest.fixture()
def catalog() -> Dict[str, str]:
    """
    Two tables, one station per type and a small menu.
    Returns a name -> id map across all created rows.
    """
    with Session(db.engine) as s:
        kitchen = Station(name="Kitchen", type="KITCHEN")
        bar = Station(name="Bar", type="BAR")
        other = Station(name="Dessert", type="OTHER")
        food = MenuCategory(name="Food", sort_order=1)
        drinks = MenuCategory(name="Drinks", sort_order=2)
        s.add_all([kitchen, bar, other, food, drinks])
        s.flush()
        items = [
            MenuItem(name="Burger", price_cents=950, category_id=food.id, station_id=kitchen.id),
            MenuItem(name="Fries", price_cents=350, category_id=food.id, station_id=kitchen.id),
            MenuItem(name="Salad", price_cents=600, sold_out=True, category_id=food.id, station_id=kitchen.id),
            MenuItem(name="Beer", price_cents=450, category_id=drinks.id, station_id=bar.id),
            MenuItem(name="Cake", price_cents=400, category_id=food.id, station_id=other.id),
        ]
        tables = [Table(name="Table 1"), Table(name="Table 2"), Table(name="Old table", active=False)]
        s.add_all(items + tables)
        s.flush()
        ids = {row.name: row.id for row in [kitchen, bar, other, food, drinks] + items + tables}
        s.commit()
    return ids


def login(client: TestClient, name: str, pin: str = "") -> TestClient:
    """Log `client` in as `name`; the session cookie stays on the client."""
    pin = pin or STAFF[name][1]
    resp = client.post("/api/auth/login", json={"name": name, "pin": pin})
    assert resp.status_code == 200, resp.text
    return client


@pytest.fixture()
def as_user(app, staff):
    """Factory: a fresh TestClient logged in as the given staff member."""
    clients: List[TestClient] = []

    def _make(name: str) -> TestClient:
        c = login(TestClient(app), name)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


def place_order(client: TestClient, catalog: Dict[str, str], *items: str, table: str = "Table 1") -> dict:
    lines = [{"menu_item_id": catalog[name], "qty": 1} for name in items]
    resp = client.post("/api/orders", json={"table_id": catalog[table], "lines": lines})
    assert resp.status_code == 201, resp.text
    return resp.json()
