import argparse
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Base, engine
from .models import MenuCategory, MenuItem, Station, Table, User
from .security import hash_pin

_log = logging.getLogger("festflow.seed")

# (name, roles, pin)
DEMO_USERS = [
    ("Mia", ["WAITER", "CASHIER"], "1111"),
    ("Noah", ["WAITER"], "2222"),
    ("Kitchen", ["KITCHEN"], "3333"),
    ("Bar", ["BAR"], "4444"),
    ("Cashier", ["CASHIER"], "5555"),
    ("Admin", ["ADMIN"], "0000"),
]

# (name, price_cents, sold_out, station, category)
DEMO_ITEMS = [
    ("Burger", 950, False, "Kitchen", "Food"),
    ("Fries", 350, False, "Kitchen", "Food"),
    ("Salad", 600, True, "Kitchen", "Food"),
    ("Beer", 450, False, "Bar", "Drinks"),
    ("Water", 200, False, "Bar", "Drinks"),
]

DEMO_TABLES = ["Table 1", "Table 2", "Table 3", "Table 4"]


def _by_name(s: Session, model, name: str):
    return s.execute(select(model).where(model.name == name)).scalar_one_or_none()


def _upsert_station(s: Session, name: str, stype: str) -> Station:
    st = _by_name(s, Station, name) or Station(name=name)
    st.type = stype
    st.active = True
    s.add(st)
    return st


def _upsert_category(s: Session, name: str, sort_order: int) -> MenuCategory:
    cat = _by_name(s, MenuCategory, name) or MenuCategory(name=name)
    cat.sort_order = sort_order
    cat.active = True
    s.add(cat)
    return cat


def _upsert_user(s: Session, name: str, roles: List[str], pin: str) -> User:
    user = _by_name(s, User, name) or User(name=name)
    user.active = True
    user.pin_hash = hash_pin(pin)
    user.set_roles(roles)
    s.add(user)
    return user


def seed_demo(reset: bool = False, bind=None) -> None:
    """
    Idempotent: re-running updates the demo rows in place and resets their
    PINs, prices and flags.
    """
    bind = bind or engine
    if reset:
        Base.metadata.drop_all(bind)
    Base.metadata.create_all(bind)

    with Session(bind) as s:
        stations = {
            "Kitchen": _upsert_station(s, "Kitchen", "KITCHEN"),
            "Bar": _upsert_station(s, "Bar", "BAR"),
        }
        categories = {
            "Food": _upsert_category(s, "Food", 1),
            "Drinks": _upsert_category(s, "Drinks", 2),
        }
        s.flush()

        for name, cents, sold_out, station, category in DEMO_ITEMS:
            item = _by_name(s, MenuItem, name) or MenuItem(name=name)
            item.price_cents = cents
            item.sold_out = sold_out
            item.active = True
            item.station_id = stations[station].id
            item.category_id = categories[category].id
            s.add(item)

        for name in DEMO_TABLES:
            table = _by_name(s, Table, name) or Table(name=name)
            table.active = True
            s.add(table)

        for name, roles, pin in DEMO_USERS:
            _upsert_user(s, name, roles, pin)

        s.commit()
    _log.info("demo data seeded", extra={"ctx": {"reset": reset}})


def seed_if_empty(bind=None) -> bool:
    """Seed only into a database without users; returns True when seeded."""
    bind = bind or engine
    with Session(bind) as s:
        if s.execute(select(User.id).limit(1)).first() is not None:
            return False
    seed_demo(bind=bind)
    return True


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Seed FestFlow demo data.")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate schema before seeding.")
    args = parser.parse_args(argv)
    seed_demo(reset=args.reset)
    print("FestFlow demo data seeded.")


if __name__ == "__main__":
    main()
