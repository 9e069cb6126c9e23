from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from .common import CamelModel


class NamedCreate(CamelModel):
    name: str = Field(..., description="Display name; surrounding whitespace is ignored")


class BrandRead(CamelModel):
    id: int
    name: str
    is_active: bool = True


class CategoryRead(CamelModel):
    id: int
    name: str
    parent_id: Optional[int] = None


class UomRead(CamelModel):
    id: int
    code: str
    name: str
    default_factor: float = 1.0


class CompanyRead(CamelModel):
    id: int
    code: str
    name: str
    type: str
    is_active: bool = True


class WarehouseRead(CamelModel):
    id: int
    code: str
    name: str


class LocationCreate(CamelModel):
    code: str
    name: str
    warehouse_code: str = "MAIN"
    warehouse_name: Optional[str] = None


class LocationRead(CamelModel):
    id: int
    code: str
    name: str
    is_active: bool = True
    warehouse: Optional[WarehouseRead] = None


class LocationStock(CamelModel):
    location_id: int
    location_name: str
    quantity: float


class ItemBase(CamelModel):
    name: str
    unit: str = Field(..., description="Unit of measure name; created when unknown")
    category: Optional[str] = None
    brand: Optional[str] = None
    supplier_name: Optional[str] = None
    min_stock: Optional[Decimal] = None


class ItemCreate(ItemBase):
    sku: Optional[str] = None
    standard_cost: Optional[Decimal] = None


class ItemUpdate(ItemBase):
    is_active: Optional[bool] = None


class ItemRead(CamelModel):
    id: int
    sku: str
    name: str
    category_id: Optional[int] = None
    category: Optional[str] = None
    brand_id: Optional[int] = None
    brand: Optional[str] = None
    base_uom_id: int
    uom: Optional[str] = None
    default_supplier_id: Optional[int] = None
    standard_cost: float
    min_stock: Optional[float] = None
    is_active: bool
    on_hand: float = 0.0
    stock: List[LocationStock] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ReferenceDeleteResult(CamelModel):
    ok: bool = True
    message: str
    affected_records: Dict[str, int] = Field(default_factory=dict)
