"""Catalog lookups shared by the item, reference-data and report handlers."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Optional

from sqlmodel import Session, col, or_, select

from stockroom.models.base import (
    COMPANY_TYPE_SUPPLIER,
    Brand,
    Category,
    Company,
    Item,
    Location,
    StockBalance,
    Uom,
    Warehouse,
)
from stockroom.schemas.catalog import ItemRead, LocationStock
from stockroom.services import ledger

DEFAULT_WAREHOUSE_CODE = "MAIN"
DEFAULT_LOCATION_CODE = "MAIN"


def generate_sku() -> str:
    return f"ITEM-{int(datetime.utcnow().timestamp() * 1000)}"


def uom_code(name: str) -> str:
    return re.sub(r"\s+", "_", name.strip().upper())


def find_uom(db: Session, name: str) -> Optional[Uom]:
    """Match a unit by display name or by the code derived from it, so "box" finds "Box"."""

    name = name.strip()
    return db.exec(select(Uom).where(or_(Uom.name == name, Uom.code == uom_code(name)))).first()


def get_or_create_uom(db: Session, name: str) -> Uom:
    name = name.strip()
    uom = find_uom(db, name)
    if uom is None:
        uom = Uom(code=uom_code(name), name=name)
        db.add(uom)
        db.flush()
    return uom


def get_or_create_brand(db: Session, name: str) -> Brand:
    name = name.strip()
    brand = db.exec(select(Brand).where(Brand.name == name)).first()
    if brand is None:
        brand = Brand(name=name)
        db.add(brand)
        db.flush()
    return brand


def find_brand_id(db: Session, name: Optional[str]) -> Optional[int]:
    if not name or not name.strip():
        return None
    brand = db.exec(select(Brand).where(Brand.name == name.strip())).first()
    return brand.id if brand else None


def find_category_id(db: Session, name: Optional[str]) -> Optional[int]:
    if not name or not name.strip():
        return None
    category = db.exec(select(Category).where(Category.name == name.strip())).first()
    return category.id if category else None


def find_supplier_id(db: Session, name: Optional[str]) -> Optional[int]:
    if not name or not name.strip():
        return None
    statement = select(Company).where(Company.name == name.strip(), Company.type == COMPANY_TYPE_SUPPLIER)
    supplier = db.exec(statement).first()
    return supplier.id if supplier else None


def first_active_location(db: Session) -> Optional[Location]:
    statement = select(Location).where(col(Location.is_active).is_(True)).order_by(col(Location.id))
    return db.exec(statement).first()


def ensure_default_location(db: Session) -> Location:
    """Return the first active location, creating the MAIN warehouse and location if there is none."""

    location = first_active_location(db)
    if location is not None:
        return location
    warehouse = db.exec(select(Warehouse).where(Warehouse.code == DEFAULT_WAREHOUSE_CODE)).first()
    if warehouse is None:
        warehouse = Warehouse(code=DEFAULT_WAREHOUSE_CODE, name="Main Warehouse", address="Default Location")
        db.add(warehouse)
        db.flush()
    location = Location(warehouse_id=warehouse.id, code=DEFAULT_LOCATION_CODE, name="Main Location")
    db.add(location)
    db.flush()
    return location


def stock_by_location(db: Session, item_ids: Iterable[int]) -> dict[int, list[LocationStock]]:
    ids = list(item_ids)
    if not ids:
        return {}
    statement = (
        select(StockBalance, Location)
        .join(Location, col(Location.id) == col(StockBalance.location_id))
        .where(col(StockBalance.item_id).in_(ids))
        .order_by(col(StockBalance.id))
    )
    grouped: dict[int, list[LocationStock]] = {}
    for balance, location in db.exec(statement).all():
        grouped.setdefault(balance.item_id, []).append(
            LocationStock(location_id=location.id, location_name=location.name, quantity=float(balance.quantity))
        )
    return grouped


def name_maps(db: Session) -> tuple[dict[int, str], dict[int, str], dict[int, str]]:
    """Return id -> name lookups for categories, brands and units."""

    categories = {row.id: row.name for row in db.exec(select(Category)).all()}
    brands = {row.id: row.name for row in db.exec(select(Brand)).all()}
    uoms = {row.id: row.name for row in db.exec(select(Uom)).all()}
    return categories, brands, uoms


def to_item_reads(db: Session, items: list[Item]) -> list[ItemRead]:
    categories, brands, uoms = name_maps(db)
    stock = stock_by_location(db, [item.id for item in items])
    reads = []
    for item in items:
        rows = stock.get(item.id, [])
        reads.append(
            ItemRead(
                id=item.id,
                sku=item.sku,
                name=item.name,
                category_id=item.category_id,
                category=categories.get(item.category_id),
                brand_id=item.brand_id,
                brand=brands.get(item.brand_id),
                base_uom_id=item.base_uom_id,
                uom=uoms.get(item.base_uom_id),
                default_supplier_id=item.default_supplier_id,
                standard_cost=float(ledger.as_decimal(item.standard_cost)),
                min_stock=float(item.min_stock) if item.min_stock is not None else None,
                is_active=item.is_active,
                on_hand=sum(row.quantity for row in rows),
                stock=rows,
                created_at=item.created_at,
                updated_at=item.updated_at,
            )
        )
    return reads
