from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from .catalog import LocationStock
from .common import CamelModel


class StockOnHandRow(CamelModel):
    id: int
    sku: str
    name: str
    category: Optional[str] = None
    brand: Optional[str] = None
    uom: Optional[str] = None
    min_stock: Optional[float] = None
    standard_cost: float
    total_stock: float
    stock_status: str
    stock_by_location: List[LocationStock] = Field(default_factory=list)


class LowStockRow(CamelModel):
    id: int
    sku: str
    name: str
    category: Optional[str] = None
    brand: Optional[str] = None
    uom: Optional[str] = None
    min_stock: float
    standard_cost: float
    total_stock: float
    percentage: float
    severity_level: str
    reorder_value: float


class MovementRow(CamelModel):
    id: int
    timestamp: datetime
    item_name: str
    item_sku: str
    type: str
    qty_in: Optional[float] = None
    qty_out: Optional[float] = None
    destination: str
    unit_cost: float
    total_value: float
    doc_no: Optional[str] = None


class RecentMovement(CamelModel):
    timestamp: datetime
    item_name: str
    destination: str
    qty_in: Optional[float] = None
    qty_out: Optional[float] = None
    type: str
    doc_no: Optional[str] = None


class DashboardStats(CamelModel):
    stock_value: float
    items_below_min: int
    receipts: int
    issues: int


class TrendDay(CamelModel):
    day: date = Field(alias="date")
    qty_in: float = Field(alias="in")
    qty_out: float = Field(alias="out")
    net: float
    in_value: float
    out_value: float
    net_value: float
    branch_transfers: float
    internal_usage: float
    stock_value: float
