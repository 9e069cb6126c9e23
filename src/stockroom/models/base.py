from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

HEADER_TYPE_GRN = "GRN"
HEADER_TYPE_ISSUE = "ISSUE"
HEADER_STATUS_POSTED = "POSTED"

COMPANY_TYPE_SUPPLIER = "SUPPLIER"
COMPANY_TYPE_CUSTOMER = "CUSTOMER"

ZERO = Decimal("0")


class Role(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    permissions: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    hashed_password: str
    role_id: int = Field(foreign_key="role.id", index=True)
    is_active: bool = Field(default=True)
    deleted_at: Optional[datetime] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Company(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    type: str = Field(index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Warehouse(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str
    address: Optional[str] = None
    is_active: bool = Field(default=True)


class Location(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    warehouse_id: int = Field(foreign_key="warehouse.id", index=True)
    code: str = Field(index=True)
    name: str
    is_active: bool = Field(default=True, index=True)


class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)


class Brand(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    is_active: bool = Field(default=True)


class Uom(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    default_factor: Decimal = Field(default=Decimal("1"), max_digits=12, decimal_places=4)


class Item(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sku: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    brand_id: Optional[int] = Field(default=None, foreign_key="brand.id", index=True)
    base_uom_id: int = Field(foreign_key="uom.id")
    default_supplier_id: Optional[int] = Field(default=None, foreign_key="company.id", index=True)
    standard_cost: Decimal = Field(default=ZERO, max_digits=14, decimal_places=4)
    min_stock: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=4)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class StockBalance(SQLModel, table=True):
    __tablename__ = "stock_balance"
    __table_args__ = (UniqueConstraint("item_id", "location_id", "lot_id", name="uq_stock_item_location_lot"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="item.id", index=True)
    location_id: int = Field(foreign_key="location.id", index=True)
    # lots are not tracked yet; every posting uses the NULL lot
    lot_id: Optional[int] = Field(default=None, index=True)
    quantity: Decimal = Field(default=ZERO, max_digits=14, decimal_places=4)


class TransactionHeader(SQLModel, table=True):
    __tablename__ = "txn_header"

    id: Optional[int] = Field(default=None, primary_key=True)
    doc_no: str = Field(index=True, unique=True)
    type: str = Field(index=True)
    status: str = Field(default=HEADER_STATUS_POSTED, index=True)
    supplier_id: Optional[int] = Field(default=None, foreign_key="company.id", index=True)
    customer_id: Optional[int] = Field(default=None, foreign_key="company.id", index=True)
    created_by: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class TransactionLine(SQLModel, table=True):
    __tablename__ = "txn_line"

    id: Optional[int] = Field(default=None, primary_key=True)
    header_id: int = Field(foreign_key="txn_header.id", index=True)
    item_id: int = Field(foreign_key="item.id", index=True)
    uom_id: int = Field(foreign_key="uom.id")
    location_id: Optional[int] = Field(default=None, foreign_key="location.id")
    qty: Decimal = Field(max_digits=14, decimal_places=4)
    unit_cost: Decimal = Field(default=ZERO, max_digits=14, decimal_places=4)


class StockMovement(SQLModel, table=True):
    __tablename__ = "stock_movement"

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="item.id", index=True)
    src_location_id: Optional[int] = Field(default=None, foreign_key="location.id")
    dst_location_id: Optional[int] = Field(default=None, foreign_key="location.id")
    qty_in: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=4)
    qty_out: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=4)
    unit_cost: Decimal = Field(default=ZERO, max_digits=14, decimal_places=4)
    ref_header_id: int = Field(foreign_key="txn_header.id", index=True)
    ref_line_id: int = Field(foreign_key="txn_line.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: int = Field(foreign_key="users.id", index=True)
    action: str = Field(index=True)
    entity: str = Field(index=True)
    entity_id: Optional[str] = Field(default=None, index=True)
    detail: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
