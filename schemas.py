"""
Database Schemas for the Bar & Waiter Coordination Service

Each Pydantic model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., Order -> "order").
Feed timestamps are integer epoch milliseconds.
"""
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field

OrderKind = Literal["order", "waiter_call"]
Language = Literal["koelsch", "hochdeutsch"]
BroadcastTarget = Literal["all", "tables", "waiters", "bars"]


class OrderItem(BaseModel):
    name: str
    price: float = Field(..., ge=0, description="Unit price")
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    table_code: str = Field(..., description="Code of the table page the ticket came from")
    table_number: int
    kind: OrderKind = "order"
    items: Optional[List[OrderItem]] = None
    total: Optional[float] = None
    timestamp: int = Field(..., description="Creation time, epoch ms")
    status: str = "new"
    ordered_by: Optional[str] = Field(None, description="Waiter name if staff-placed")
    claimed_by: Optional[str] = None
    claimed_at: Optional[int] = None
    hidden_from_bar: bool = False
    completed_by_waiter: bool = False
    stats_recorded: bool = False


class Broadcast(BaseModel):
    message: str
    timestamp: int
    target: BroadcastTarget = "all"
    active: bool = True
    read_by: Dict[str, bool] = {}


class Waiterassignment(BaseModel):
    waiter_name: str
    tables: List[int] = []


class BarStation(BaseModel):
    id: str
    name: str
    assigned_tables: List[int] = []


class AppSettings(BaseModel):
    language: Language = "koelsch"
    auto_hide_minutes: int = Field(6, ge=0, description="0 = never auto-hide")
    bar_stations: List[BarStation] = [BarStation(id="theke-main", name="Haupttheke")]
    waiter_call_cooldown_seconds: int = Field(300, ge=0)
    waiter_min_auto_hide_minutes: int = Field(0, ge=0, description="Lower bound on the waiter-side threshold, 0 = off")


class ItemStats(BaseModel):
    quantity: int = 0
    amount: float = 0.0


class TableStats(BaseModel):
    table_number: int
    total_orders: int = 0
    total_amount: float = 0.0
    items: Dict[str, ItemStats] = {}


class Statistics(BaseModel):
    total_orders: int = 0
    total_amount: float = 0.0
    item_totals: Dict[str, ItemStats] = {}
    tables: Dict[int, TableStats] = {}


"""
Notes:
- Settings and statistics are single documents keyed "app" and "totals".
- Waiter assignments are keyed by waiter name.
"""
