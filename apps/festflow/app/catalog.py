from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import require_auth, require_role
from .db import commit_or_conflict, get_session
from .models import MenuCategory, MenuItem, Station, Table, User
from .realtime import hub
from .schemas import (
    BootstrapOut,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    MenuItemCreate,
    MenuItemOut,
    MenuItemUpdate,
    StationCreate,
    StationOut,
    StationUpdate,
    TableCreate,
    TableOut,
    TableUpdate,
)

_log = logging.getLogger("festflow.catalog")

router = APIRouter(prefix="/api")

require_admin = require_role("ADMIN")


def _apply(obj, changes: dict) -> None:
    for key, value in changes.items():
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise HTTPException(status_code=400, detail=f"{key} must not be blank")
        setattr(obj, key, value)


def _get_or_404(s: Session, model, obj_id: str, what: str):
    obj = s.get(model, obj_id)
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return obj


@router.get("/bootstrap", response_model=BootstrapOut)
def bootstrap(s: Session = Depends(get_session), _user: User = Depends(require_auth)):
    """Everything a board needs on load: active tables, stations, categories and items."""
    tables = s.execute(select(Table).where(Table.active.is_(True)).order_by(Table.name.asc())).scalars().all()
    stations = s.execute(select(Station).where(Station.active.is_(True)).order_by(Station.name.asc())).scalars().all()
    categories = (
        s.execute(
            select(MenuCategory)
            .where(MenuCategory.active.is_(True))
            .order_by(MenuCategory.sort_order.asc(), MenuCategory.name.asc())
        )
        .scalars()
        .all()
    )
    items = s.execute(select(MenuItem).where(MenuItem.active.is_(True)).order_by(MenuItem.name.asc())).scalars().all()
    return BootstrapOut(
        tables=[TableOut.model_validate(t) for t in tables],
        stations=[StationOut.model_validate(st) for st in stations],
        categories=[CategoryOut.model_validate(c) for c in categories],
        items=[MenuItemOut.model_validate(i) for i in items],
    )


# --- Tables ---
@router.get("/tables", response_model=List[TableOut])
def list_tables(s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    return s.execute(select(Table).order_by(Table.name.asc())).scalars().all()


@router.post("/tables", response_model=TableOut, status_code=201)
def create_table(body: TableCreate, s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    table = Table()
    _apply(table, {"name": body.name})
    s.add(table)
    commit_or_conflict(s, "table name already exists")
    s.refresh(table)
    hub.publish("table", table.id)
    return table


@router.patch("/tables/{table_id}", response_model=TableOut)
def update_table(
    table_id: str,
    body: TableUpdate,
    s: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    table = _get_or_404(s, Table, table_id, "table")
    _apply(table, body.model_dump(exclude_unset=True, exclude_none=True))
    commit_or_conflict(s, "table name already exists")
    s.refresh(table)
    hub.publish("table", table.id)
    return table


# --- Stations ---
@router.get("/stations", response_model=List[StationOut])
def list_stations(s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    return s.execute(select(Station).order_by(Station.name.asc())).scalars().all()


@router.post("/stations", response_model=StationOut, status_code=201)
def create_station(body: StationCreate, s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    station = Station()
    _apply(station, body.model_dump())
    s.add(station)
    commit_or_conflict(s, "station name already exists")
    s.refresh(station)
    hub.publish("station", station.id)
    return station


@router.patch("/stations/{station_id}", response_model=StationOut)
def update_station(
    station_id: str,
    body: StationUpdate,
    s: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    station = _get_or_404(s, Station, station_id, "station")
    _apply(station, body.model_dump(exclude_unset=True, exclude_none=True))
    commit_or_conflict(s, "station name already exists")
    s.refresh(station)
    hub.publish("station", station.id)
    return station


# --- Menu categories ---
@router.get("/menu/categories", response_model=List[CategoryOut])
def list_categories(s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    stmt = select(MenuCategory).order_by(MenuCategory.sort_order.asc(), MenuCategory.name.asc())
    return s.execute(stmt).scalars().all()


@router.post("/menu/categories", response_model=CategoryOut, status_code=201)
def create_category(body: CategoryCreate, s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    category = MenuCategory()
    _apply(category, body.model_dump())
    s.add(category)
    commit_or_conflict(s, "category name already exists")
    s.refresh(category)
    hub.publish("menu_category", category.id)
    return category


@router.patch("/menu/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    body: CategoryUpdate,
    s: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    category = _get_or_404(s, MenuCategory, category_id, "category")
    _apply(category, body.model_dump(exclude_unset=True, exclude_none=True))
    commit_or_conflict(s, "category name already exists")
    s.refresh(category)
    hub.publish("menu_category", category.id)
    return category


# --- Menu items ---
def _check_refs(s: Session, category_id: str | None, station_id: str | None) -> None:
    if category_id is not None and s.get(MenuCategory, category_id) is None:
        raise HTTPException(status_code=400, detail="unknown category_id")
    if station_id is not None and s.get(Station, station_id) is None:
        raise HTTPException(status_code=400, detail="unknown station_id")


@router.get("/menu/items", response_model=List[MenuItemOut])
def list_menu_items(
    include_sold_out: str = "",
    s: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    stmt = select(MenuItem).where(MenuItem.active.is_(True))
    if include_sold_out != "1":
        stmt = stmt.where(MenuItem.sold_out.is_(False))
    return s.execute(stmt.order_by(MenuItem.name.asc())).scalars().all()


@router.post("/menu/items", response_model=MenuItemOut, status_code=201)
def create_menu_item(body: MenuItemCreate, s: Session = Depends(get_session), _admin: User = Depends(require_admin)):
    _check_refs(s, body.category_id, body.station_id)
    item = MenuItem(sold_out=False, active=True)
    _apply(item, body.model_dump())
    s.add(item)
    commit_or_conflict(s, "menu item name already exists")
    s.refresh(item)
    _log.info("menu item created", extra={"ctx": {"menu_item_id": item.id, "station_id": item.station_id}})
    hub.publish("menu_item", item.id)
    return item


@router.patch("/menu/items/{item_id}", response_model=MenuItemOut)
def update_menu_item(
    item_id: str,
    body: MenuItemUpdate,
    s: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    item = _get_or_404(s, MenuItem, item_id, "menu item")
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    _check_refs(s, changes.get("category_id"), changes.get("station_id"))
    _apply(item, changes)
    commit_or_conflict(s, "menu item name already exists")
    s.refresh(item)
    hub.publish("menu_item", item.id)
    return item
