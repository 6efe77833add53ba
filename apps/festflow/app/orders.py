"""
Order lifecycle.

An order is OPEN while any of its lines still needs work, DONE once every
line is DONE or CANCELED, and CANCELED when a waiter cancels it or every
line ends up canceled. Payment is tracked separately (UNPAID -> PAID) so
a cashier can settle a table before the kitchen finishes.

Every mutation commits first and only then notifies the boards.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import require_auth, require_role
from .db import get_session, utcnow
from .models import ORDER_STATUSES, PAYMENT_STATUSES, MenuItem, Order, OrderLine, Table, User
from .realtime import hub
from .schemas import LineStatusIn, OrderCancel, OrderCreate, OrderLineOut, OrderOut

_log = logging.getLogger("festflow.orders")

router = APIRouter(prefix="/api")

ACTIVE_LINE_STATUSES = ("OPEN", "IN_PROGRESS")
FINISHED_LINE_STATUSES = ("DONE", "CANCELED")
# Roles that work a station queue, keyed by station type. OTHER stations are admin-only.
STATION_ROLES = {"KITCHEN": "KITCHEN", "BAR": "BAR"}


def parse_statuses(raw: str, allowed: Iterable[str]) -> List[str]:
    """Split a comma-separated filter and drop unknown values."""
    valid = set(allowed)
    out: List[str] = []
    for part in (raw or "").split(","):
        value = part.strip()
        if value in valid and value not in out:
            out.append(value)
    return out


def order_out(od: Order, lines: Optional[List[OrderLine]] = None) -> OrderOut:
    out = OrderOut.model_validate(od)
    if lines is not None:
        out.lines = [OrderLineOut.model_validate(ln) for ln in lines]
    return out


def _get_order(s: Session, order_id: str) -> Order:
    od = s.get(Order, order_id)
    if od is None:
        raise HTTPException(status_code=404, detail="order not found")
    return od


def can_work_station(user: User, station_type: str) -> bool:
    roles = set(user.roles)
    if "ADMIN" in roles:
        return True
    role = STATION_ROLES.get(station_type)
    return role is not None and role in roles


def settle_order_status(od: Order) -> str:
    """
    Derive the order status from its lines after a line changed.
    Returns the (possibly unchanged) order status.
    """
    if od.status == "CANCELED" or not od.lines:
        return od.status
    if od.status == "OPEN" and od.payment_status == "PAID" and all(ln.status == "CANCELED" for ln in od.lines):
        # Settled orders never move to CANCELED.
        return od.status
    statuses = [ln.status for ln in od.lines]
    if od.status == "OPEN":
        if all(st == "CANCELED" for st in statuses):
            od.status = "CANCELED"
            od.canceled_reason = "all lines canceled"
        elif all(st in FINISHED_LINE_STATUSES for st in statuses):
            od.status = "DONE"
    elif od.status == "DONE" and any(st in ACTIVE_LINE_STATUSES for st in statuses):
        # A line was pulled back into the queue.
        od.status = "OPEN"
    return od.status


@router.get("/orders", response_model=List[OrderOut])
def list_orders(
    status: str = "",
    mine: str = "",
    payment_status: str = "",
    s: Session = Depends(get_session),
    user: User = Depends(require_auth),
):
    stmt = select(Order)
    statuses = parse_statuses(status, ORDER_STATUSES)
    if len(statuses) == 1:
        stmt = stmt.where(Order.status == statuses[0])
    elif statuses:
        stmt = stmt.where(Order.status.in_(statuses))
    payments = parse_statuses(payment_status, PAYMENT_STATUSES)
    if payments:
        stmt = stmt.where(Order.payment_status.in_(payments))
    if mine == "1":
        stmt = stmt.where(Order.created_by_id == user.id)
    ods = s.execute(stmt.order_by(Order.created_at.desc())).scalars().all()
    return [order_out(od) for od in ods]


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, s: Session = Depends(get_session), _user: User = Depends(require_auth)):
    return order_out(_get_order(s, order_id))


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(body: OrderCreate, s: Session = Depends(get_session), user: User = Depends(require_role("WAITER"))):
    table = s.get(Table, body.table_id)
    if table is None or not table.active:
        raise HTTPException(status_code=400, detail="unknown table_id")

    ids = list(dict.fromkeys(ln.menu_item_id for ln in body.lines))
    items = {
        mi.id: mi
        for mi in s.execute(select(MenuItem).where(MenuItem.id.in_(ids), MenuItem.active.is_(True))).scalars().all()
    }
    for ln in body.lines:
        mi = items.get(ln.menu_item_id)
        if mi is None:
            raise HTTPException(status_code=400, detail=f"unknown menu_item_id: {ln.menu_item_id}")
        if mi.sold_out:
            raise HTTPException(status_code=400, detail=f"sold out: {mi.name}")

    od = Order(
        table_id=table.id,
        status="OPEN",
        payment_status="UNPAID",
        created_by_id=user.id,
        created_by_name=user.name,
    )
    for pos, ln in enumerate(body.lines):
        mi = items[ln.menu_item_id]
        note = (ln.note or "").strip() or None
        od.lines.append(
            OrderLine(
                position=pos,
                menu_item_id=mi.id,
                station_id=mi.station_id,
                qty=ln.qty,
                note=note,
                price_cents=mi.price_cents,
                status="OPEN",
            )
        )
    s.add(od)
    s.commit()
    s.refresh(od)
    _log.info(
        "order created",
        extra={"ctx": {"order_id": od.id, "table_id": table.id, "lines": len(od.lines), "by": user.id}},
    )
    hub.publish("order", od.id)
    return order_out(od)


@router.patch("/orders/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: str,
    body: Optional[OrderCancel] = None,
    s: Session = Depends(get_session),
    user: User = Depends(require_role("WAITER", "ADMIN")),
):
    od = _get_order(s, order_id)
    if od.status == "CANCELED":
        return order_out(od)
    if od.payment_status == "PAID":
        raise HTTPException(status_code=409, detail="paid orders cannot be canceled")
    reason = ((body.reason if body else None) or "").strip() or "canceled"
    od.status = "CANCELED"
    od.canceled_reason = reason
    for ln in od.lines:
        ln.status = "CANCELED"
    s.commit()
    s.refresh(od)
    _log.info("order canceled", extra={"ctx": {"order_id": od.id, "reason": reason, "by": user.id}})
    hub.publish("order", od.id)
    return order_out(od)


@router.patch("/order-lines/{line_id}/status", response_model=OrderLineOut)
def set_line_status(
    line_id: str,
    body: LineStatusIn,
    s: Session = Depends(get_session),
    user: User = Depends(require_role("KITCHEN", "BAR", "ADMIN")),
):
    line = s.get(OrderLine, line_id)
    if line is None:
        raise HTTPException(status_code=404, detail="order line not found")
    if not can_work_station(user, line.station.type):
        raise HTTPException(status_code=403, detail="forbidden")
    od = line.order
    if od.status == "CANCELED":
        raise HTTPException(status_code=409, detail="order is canceled")
    if line.status == "CANCELED":
        raise HTTPException(status_code=409, detail="line is canceled")
    if (
        body.status == "CANCELED"
        and od.payment_status == "PAID"
        and all(ln.status == "CANCELED" for ln in od.lines if ln.id != line.id)
    ):
        # Canceling the last live line would cancel a settled order.
        raise HTTPException(status_code=409, detail="paid orders cannot be canceled")

    previous = od.status
    line.status = body.status
    settle_order_status(od)
    s.commit()
    s.refresh(line)
    if od.status != previous:
        _log.info(
            "order status changed",
            extra={"ctx": {"order_id": od.id, "from": previous, "to": od.status}},
        )
    hub.publish("order_line", line.id)
    return OrderLineOut.model_validate(line)


@router.patch("/orders/{order_id}/pay", response_model=OrderOut)
def pay_order(order_id: str, s: Session = Depends(get_session), user: User = Depends(require_role("CASHIER", "ADMIN"))):
    od = _get_order(s, order_id)
    if od.status == "CANCELED":
        raise HTTPException(status_code=409, detail="order is canceled")
    if od.payment_status == "PAID":
        raise HTTPException(status_code=409, detail="order already paid")
    od.payment_status = "PAID"
    od.paid_at = utcnow()
    od.paid_by_name = user.name
    s.commit()
    s.refresh(od)
    _log.info(
        "order paid",
        extra={"ctx": {"order_id": od.id, "total_cents": od.total_cents, "by": user.id}},
    )
    hub.publish("order", od.id)
    return order_out(od)


@router.get("/board", response_model=List[OrderOut])
def board(
    station_type: str = "",
    s: Session = Depends(get_session),
    user: User = Depends(require_auth),
):
    """Open orders with only the unfinished lines routed to one station type."""
    if station_type not in ("KITCHEN", "BAR"):
        raise HTTPException(status_code=400, detail="station_type must be KITCHEN or BAR")
    if not can_work_station(user, station_type):
        raise HTTPException(status_code=403, detail="forbidden")
    ods = s.execute(select(Order).where(Order.status == "OPEN").order_by(Order.created_at.asc())).scalars().all()
    out: List[OrderOut] = []
    for od in ods:
        lines = [ln for ln in od.lines if ln.station.type == station_type and ln.status in ACTIVE_LINE_STATUSES]
        if lines:
            out.append(order_out(od, lines))
    return out


