from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["WAITER", "KITCHEN", "BAR", "CASHIER", "ADMIN"]
StationType = Literal["KITCHEN", "BAR", "OTHER"]
LineStatus = Literal["OPEN", "IN_PROGRESS", "DONE", "CANCELED"]


# --- Users / auth ---
class UserOut(BaseModel):
    id: str
    name: str
    role: Optional[Role]
    roles: List[Role]
    active: bool
    model_config = ConfigDict(from_attributes=True)


class LoginIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    pin: str = Field(min_length=3, max_length=12)


class MeOut(BaseModel):
    user: UserOut


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    roles: List[Role] = Field(min_length=1)
    pin: str = Field(min_length=3, max_length=12)


class UserUpdate(BaseModel):
    roles: Optional[List[Role]] = Field(default=None, min_length=1)
    pin: Optional[str] = Field(default=None, min_length=3, max_length=12)
    active: Optional[bool] = None


# --- Catalog ---
class TableOut(BaseModel):
    id: str
    name: str
    active: bool
    model_config = ConfigDict(from_attributes=True)


class TableCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class TableUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    active: Optional[bool] = None


class StationOut(BaseModel):
    id: str
    name: str
    type: StationType
    active: bool
    model_config = ConfigDict(from_attributes=True)


class StationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    type: StationType


class StationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    type: Optional[StationType] = None
    active: Optional[bool] = None


class CategoryOut(BaseModel):
    id: str
    name: str
    sort_order: int
    active: bool
    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    sort_order: Optional[int] = None
    active: Optional[bool] = None


class MenuItemOut(BaseModel):
    id: str
    name: str
    price_cents: int
    sold_out: bool
    active: bool
    category_id: str
    station_id: str
    category: Optional[CategoryOut] = None
    station: Optional[StationOut] = None
    model_config = ConfigDict(from_attributes=True)


class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    price_cents: int = Field(ge=0)
    category_id: str = Field(min_length=1)
    station_id: str = Field(min_length=1)


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    price_cents: Optional[int] = Field(default=None, ge=0)
    sold_out: Optional[bool] = None
    active: Optional[bool] = None
    category_id: Optional[str] = Field(default=None, min_length=1)
    station_id: Optional[str] = Field(default=None, min_length=1)


class BootstrapOut(BaseModel):
    tables: List[TableOut]
    stations: List[StationOut]
    categories: List[CategoryOut]
    items: List[MenuItemOut]


# --- Orders ---
class OrderLineIn(BaseModel):
    menu_item_id: str = Field(min_length=1)
    qty: int = Field(ge=1)
    note: Optional[str] = Field(default=None, max_length=200)


class OrderCreate(BaseModel):
    table_id: str = Field(min_length=1)
    lines: List[OrderLineIn] = Field(min_length=1)


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)


class LineStatusIn(BaseModel):
    status: LineStatus


class OrderLineOut(BaseModel):
    id: str
    order_id: str
    qty: int
    note: Optional[str]
    status: LineStatus
    price_cents: int
    menu_item_id: str
    station_id: str
    created_at: datetime
    menu_item: Optional[MenuItemOut] = None
    station: Optional[StationOut] = None
    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: str
    status: Literal["OPEN", "DONE", "CANCELED"]
    payment_status: Literal["UNPAID", "PAID"]
    table_id: str
    table: Optional[TableOut] = None
    created_by_id: Optional[str]
    created_by_name: str
    canceled_reason: Optional[str]
    paid_at: Optional[datetime]
    paid_by_name: Optional[str]
    created_at: datetime
    total_cents: int
    lines: List[OrderLineOut]
    model_config = ConfigDict(from_attributes=True)
