import csv
import io
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, select

from stockroom.api.deps import get_db
from stockroom.auth import require_permission
from stockroom.core.errors import BusinessRuleViolation, InvalidInput, NotFound
from stockroom.core.logging_config import get_logger
from stockroom.core.permissions import ITEMS_CREATE, ITEMS_DELETE, ITEMS_UPDATE, ITEMS_VIEW, REPORTS_EXPORT
from stockroom.models.base import ZERO, Brand, Category, Item, StockBalance, StockMovement
from stockroom.schemas.catalog import ItemCreate, ItemRead, ItemUpdate
from stockroom.schemas.common import Ok
from stockroom.schemas.user import Principal
from stockroom.services import catalog
from stockroom.web import templates

router = APIRouter(prefix="/items", tags=["items"])
logger = get_logger(__name__)

EXPORT_COLUMNS = ["SKU", "Name", "Brand", "Category", "UOM", "On Hand", "Min", "Std Cost", "Value"]


def _filtered_items(db: Session, q: Optional[str], brand: Optional[str], category: Optional[str]) -> list[Item]:
    statement = select(Item)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        statement = statement.where(col(Item.name).ilike(pattern) | col(Item.sku).ilike(pattern))
    if brand and brand.strip():
        statement = statement.join(Brand, col(Brand.id) == col(Item.brand_id)).where(Brand.name == brand.strip())
    if category and category.strip():
        statement = statement.join(Category, col(Category.id) == col(Item.category_id)).where(
            Category.name == category.strip()
        )
    statement = statement.order_by(col(Item.created_at).desc(), col(Item.id).desc())
    return list(db.exec(statement).all())


def _load_item(db: Session, item_id: int) -> ItemRead:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    return catalog.to_item_reads(db, [item])[0]


def _require_name_and_unit(name: str, unit: str) -> None:
    if not name.strip() or not unit.strip():
        raise InvalidInput("Name and unit are required")


@router.get("", response_model=list[ItemRead])
def list_items(
    q: Optional[str] = None,
    brand: Optional[str] = None,
    category: Optional[str] = None,
    _: Principal = Depends(require_permission(ITEMS_VIEW)),
    db: Session = Depends(get_db),
) -> list[ItemRead]:
    return catalog.to_item_reads(db, _filtered_items(db, q, brand, category))


@router.get("/export")
def export_items(
    request: Request,
    q: Optional[str] = None,
    brand: Optional[str] = None,
    category: Optional[str] = None,
    below: Optional[str] = None,
    format: str = "csv",
    _: Principal = Depends(require_permission(REPORTS_EXPORT)),
    db: Session = Depends(get_db),
) -> Response:
    rows = []
    for item in catalog.to_item_reads(db, _filtered_items(db, q, brand, category)):
        below_min = item.min_stock is not None and item.on_hand < item.min_stock
        if below == "1" and not below_min:
            continue
        rows.append(
            [
                item.sku,
                item.name,
                item.brand or "",
                item.category or "",
                item.uom or "",
                item.on_hand,
                item.min_stock if item.min_stock is not None else "",
                item.standard_cost,
                item.on_hand * item.standard_cost,
            ]
        )

    if format == "html":
        return templates.TemplateResponse(
            request,
            "items_export.html",
            {"columns": EXPORT_COLUMNS, "rows": rows, "generated_at": datetime.utcnow()},
        )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    writer.writerows(rows)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="items.csv"'},
    )


@router.get("/{item_id}", response_model=ItemRead)
def get_item(
    item_id: int,
    _: Principal = Depends(require_permission(ITEMS_VIEW)),
    db: Session = Depends(get_db),
) -> ItemRead:
    return _load_item(db, item_id)


@router.post("", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: ItemCreate,
    _: Principal = Depends(require_permission(ITEMS_CREATE)),
    db: Session = Depends(get_db),
) -> ItemRead:
    _require_name_and_unit(payload.name, payload.unit)
    uom = catalog.get_or_create_uom(db, payload.unit)
    item = Item(
        sku=(payload.sku or "").strip() or catalog.generate_sku(),
        name=payload.name.strip(),
        category_id=catalog.find_category_id(db, payload.category),
        brand_id=catalog.find_brand_id(db, payload.brand),
        default_supplier_id=catalog.find_supplier_id(db, payload.supplier_name),
        base_uom_id=uom.id,
        min_stock=payload.min_stock or None,
        standard_cost=payload.standard_cost or ZERO,
    )
    db.add(item)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise InvalidInput("SKU already exists") from exc

    location = catalog.ensure_default_location(db)
    db.add(StockBalance(item_id=item.id, location_id=location.id, quantity=ZERO))
    db.commit()
    logger.info("Created item %s (%s)", item.sku, item.name)
    return _load_item(db, item.id)


@router.put("/{item_id}", response_model=ItemRead)
def update_item(
    item_id: int,
    payload: ItemUpdate,
    _: Principal = Depends(require_permission(ITEMS_UPDATE)),
    db: Session = Depends(get_db),
) -> ItemRead:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    _require_name_and_unit(payload.name, payload.unit)

    item.name = payload.name.strip()
    item.base_uom_id = catalog.get_or_create_uom(db, payload.unit).id
    item.category_id = catalog.find_category_id(db, payload.category)
    item.brand_id = catalog.get_or_create_brand(db, payload.brand).id if payload.brand and payload.brand.strip() else None
    item.default_supplier_id = catalog.find_supplier_id(db, payload.supplier_name)
    item.min_stock = payload.min_stock or None
    if payload.is_active is not None:
        item.is_active = payload.is_active
    item.updated_at = datetime.utcnow()
    db.add(item)
    db.commit()
    return _load_item(db, item_id)


@router.delete("/{item_id}", response_model=Ok)
def delete_item(
    item_id: int,
    _: Principal = Depends(require_permission(ITEMS_DELETE)),
    db: Session = Depends(get_db),
) -> Ok:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    movements = db.exec(select(func.count(StockMovement.id)).where(StockMovement.item_id == item_id)).one()
    if movements:
        raise BusinessRuleViolation("Cannot delete item with transaction history. Consider deactivating instead.")
    db.exec(delete(StockBalance).where(col(StockBalance.item_id) == item_id))
    db.delete(item)
    db.commit()
    logger.info("Deleted item %s", item_id)
    return Ok(message="Item deleted successfully")
