from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base, new_id, utcnow


ROLES = ("WAITER", "KITCHEN", "BAR", "CASHIER", "ADMIN")
STATION_TYPES = ("KITCHEN", "BAR", "OTHER")
ORDER_STATUSES = ("OPEN", "DONE", "CANCELED")
PAYMENT_STATUSES = ("UNPAID", "PAID")
LINE_STATUSES = ("OPEN", "IN_PROGRESS", "DONE", "CANCELED")


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    pin_hash: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    role_rows: Mapped[List["UserRole"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserRole.position",
        lazy="selectin",
    )

    @property
    def roles(self) -> List[str]:
        return [r.role for r in self.role_rows]

    @property
    def role(self) -> Optional[str]:
        # Primary role: the first one assigned.
        return self.role_rows[0].role if self.role_rows else None

    def set_roles(self, roles: List[str]) -> None:
        # Existing rows are reused so (user_id, role) stays unique during flush.
        existing = {r.role: r for r in self.role_rows}
        rows: List[UserRole] = []
        for i, name in enumerate(dict.fromkeys(roles)):
            row = existing.get(name) or UserRole(role=name)
            row.position = i
            rows.append(row)
        self.role_rows = rows


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"))
    role: Mapped[str] = mapped_column(String(16))
    position: Mapped[int] = mapped_column(Integer, default=0)
    user: Mapped[User] = relationship(back_populates="role_rows")


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    expires_at: Mapped[int] = mapped_column(BigInteger)  # epoch seconds
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Table(Base):
    __tablename__ = "tables"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(80), unique=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)


class Station(Base):
    __tablename__ = "stations"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(80), unique=True)
    type: Mapped[str] = mapped_column(String(16), default="KITCHEN")  # KITCHEN/BAR/OTHER
    active: Mapped[bool] = mapped_column(Boolean, default=True)


class MenuCategory(Base):
    __tablename__ = "menu_categories"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(80), unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)


class MenuItem(Base):
    __tablename__ = "menu_items"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    price_cents: Mapped[int] = mapped_column(BigInteger, default=0)
    sold_out: Mapped[bool] = mapped_column(Boolean, default=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    category_id: Mapped[str] = mapped_column(String(32), ForeignKey("menu_categories.id"))
    station_id: Mapped[str] = mapped_column(String(32), ForeignKey("stations.id"))
    category: Mapped[MenuCategory] = relationship(lazy="joined")
    station: Mapped[Station] = relationship(lazy="joined")


class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    table_id: Mapped[str] = mapped_column(String(32), ForeignKey("tables.id"))
    status: Mapped[str] = mapped_column(String(16), default="OPEN", index=True)  # OPEN/DONE/CANCELED
    payment_status: Mapped[str] = mapped_column(String(16), default="UNPAID")  # UNPAID/PAID
    created_by_id: Mapped[Optional[str]] = mapped_column(String(32), default=None, index=True)
    created_by_name: Mapped[str] = mapped_column(String(120))
    canceled_reason: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
    paid_by_name: Mapped[Optional[str]] = mapped_column(String(120), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    table: Mapped[Table] = relationship(lazy="joined")
    lines: Mapped[List["OrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
        lazy="selectin",
    )

    @property
    def total_cents(self) -> int:
        return sum(ln.qty * ln.price_cents for ln in self.lines if ln.status != "CANCELED")


class OrderLine(Base):
    __tablename__ = "order_lines"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    menu_item_id: Mapped[str] = mapped_column(String(32), ForeignKey("menu_items.id"))
    station_id: Mapped[str] = mapped_column(String(32), ForeignKey("stations.id"), index=True)
    qty: Mapped[int] = mapped_column(Integer, default=1)
    note: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    price_cents: Mapped[int] = mapped_column(BigInteger, default=0)  # snapshot at order time
    status: Mapped[str] = mapped_column(String(16), default="OPEN")  # OPEN/IN_PROGRESS/DONE/CANCELED
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    order: Mapped[Order] = relationship(back_populates="lines")
    menu_item: Mapped[MenuItem] = relationship(lazy="joined")
    station: Mapped[Station] = relationship(lazy="joined")
