"""Read-side queries behind the reports, dashboard stats and movement feed."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlmodel import Session, col, func, select

from stockroom.core.config import get_settings
from stockroom.models.base import (
    HEADER_TYPE_GRN,
    HEADER_TYPE_ISSUE,
    ZERO,
    Brand,
    Category,
    Company,
    Item,
    Location,
    StockBalance,
    StockMovement,
    TransactionHeader,
)
from stockroom.schemas.common import FilterOption
from stockroom.schemas.report import (
    DashboardStats,
    LowStockRow,
    MovementRow,
    RecentMovement,
    StockOnHandRow,
    TrendDay,
)
from stockroom.services import catalog, ledger

STATUS_IN_STOCK = "in-stock"
STATUS_OUT_OF_STOCK = "out-of-stock"
STATUS_LOW_STOCK = "low-stock"
STATUS_BELOW_MIN = "below-min"

STATUS_OPTIONS = [
    FilterOption(value=STATUS_IN_STOCK, label="In Stock"),
    FilterOption(value=STATUS_OUT_OF_STOCK, label="Out of Stock"),
    FilterOption(value=STATUS_LOW_STOCK, label="Low Stock"),
    FilterOption(value=STATUS_BELOW_MIN, label="Below Minimum"),
]

SEVERITY_OPTIONS = [
    FilterOption(value="critical", label="Critical (<=25%)"),
    FilterOption(value="high", label="High (26-50%)"),
    FilterOption(value="medium", label="Medium (51-75%)"),
    FilterOption(value="low", label="Low (76-99%)"),
]

TYPE_LABELS = {HEADER_TYPE_GRN: "Received", HEADER_TYPE_ISSUE: "Issued"}

TREND_DAYS = 7


def stock_status(total: float, min_stock: float) -> str:
    if total == 0:
        return STATUS_OUT_OF_STOCK
    if min_stock > 0 and total < min_stock:
        return STATUS_BELOW_MIN
    return STATUS_IN_STOCK


def matches_status(status: str, total: float, min_stock: float) -> bool:
    if status == STATUS_IN_STOCK:
        return total > 0
    if status == STATUS_OUT_OF_STOCK:
        return total == 0
    if status == STATUS_LOW_STOCK:
        return total > 0 and 0 < min_stock and total < min_stock
    if status == STATUS_BELOW_MIN:
        return 0 < min_stock and total < min_stock
    return True


def severity_level(percentage: float) -> str:
    if percentage <= 25:
        return "critical"
    if percentage <= 50:
        return "high"
    if percentage <= 75:
        return "medium"
    return "low"


def filter_options(db: Session) -> dict[str, list[FilterOption]]:
    categories = db.exec(select(Category.name).order_by(col(Category.name))).all()
    brands = db.exec(select(Brand.name).order_by(col(Brand.name))).all()
    return {
        "categories": [FilterOption(value=name, label=name) for name in categories],
        "brands": [FilterOption(value=name, label=name) for name in brands],
    }


def _active_items(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
) -> list[Item]:
    statement = select(Item).where(col(Item.is_active).is_(True))
    if search:
        pattern = f"%{search}%"
        statement = statement.where(col(Item.name).ilike(pattern) | col(Item.sku).ilike(pattern))
    if category:
        statement = statement.join(Category, col(Category.id) == col(Item.category_id)).where(Category.name == category)
    if brand:
        statement = statement.join(Brand, col(Brand.id) == col(Item.brand_id)).where(Brand.name == brand)
    return list(db.exec(statement.order_by(col(Item.name))).all())


def stock_on_hand(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    status: Optional[str] = None,
) -> list[StockOnHandRow]:
    items = _active_items(db, search=search, category=category, brand=brand)
    categories, brands, uoms = catalog.name_maps(db)
    stock = catalog.stock_by_location(db, [item.id for item in items])
    rows = []
    for item in items:
        locations = stock.get(item.id, [])
        total = sum(entry.quantity for entry in locations)
        min_stock = float(item.min_stock or 0)
        if status and not matches_status(status, total, min_stock):
            continue
        rows.append(
            StockOnHandRow(
                id=item.id,
                sku=item.sku,
                name=item.name,
                category=categories.get(item.category_id),
                brand=brands.get(item.brand_id),
                uom=uoms.get(item.base_uom_id),
                min_stock=float(item.min_stock) if item.min_stock is not None else None,
                standard_cost=float(ledger.as_decimal(item.standard_cost)),
                total_stock=total,
                stock_status=stock_status(total, min_stock),
                stock_by_location=locations,
            )
        )
    return rows


def low_stock(
    db: Session,
    *,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    severity: Optional[str] = None,
) -> list[LowStockRow]:
    """Active items whose total on-hand is under their minimum, most critical first."""

    items = [item for item in _active_items(db, category=category, brand=brand) if (item.min_stock or ZERO) > 0]
    categories, brands, uoms = catalog.name_maps(db)
    on_hand = ledger.on_hand_by_item(db, [item.id for item in items])
    rows = []
    for item in items:
        total = float(on_hand.get(item.id, ZERO))
        min_stock = float(item.min_stock)
        if total >= min_stock:
            continue
        percentage = round(total / min_stock * 100, 1)
        level = severity_level(percentage)
        if severity and level != severity:
            continue
        cost = float(ledger.as_decimal(item.standard_cost))
        rows.append(
            LowStockRow(
                id=item.id,
                sku=item.sku,
                name=item.name,
                category=categories.get(item.category_id),
                brand=brands.get(item.brand_id),
                uom=uoms.get(item.base_uom_id),
                min_stock=min_stock,
                standard_cost=cost,
                total_stock=total,
                percentage=percentage,
                severity_level=level,
                reorder_value=(min_stock - total) * cost,
            )
        )
    rows.sort(key=lambda row: row.percentage)
    return rows


@dataclass
class _MovementContext:
    movement: StockMovement
    item: Optional[Item]
    header: Optional[TransactionHeader]
    destination: str


def _destination(
    header: Optional[TransactionHeader],
    movement: StockMovement,
    locations: dict[int, str],
    customers: dict[int, str],
) -> str:
    if header is not None and header.type == HEADER_TYPE_GRN:
        return locations.get(movement.dst_location_id, "Unknown Location")
    if header is not None and header.type == HEADER_TYPE_ISSUE:
        if header.customer_id and header.customer_id in customers:
            return customers[header.customer_id]
        return get_settings().in_house_destination
    return locations.get(movement.dst_location_id) or locations.get(movement.src_location_id) or "Unknown"


def _with_context(db: Session, movements: list[StockMovement]) -> list[_MovementContext]:
    item_ids = {m.item_id for m in movements}
    header_ids = {m.ref_header_id for m in movements}
    items = {row.id: row for row in db.exec(select(Item).where(col(Item.id).in_(item_ids))).all()} if item_ids else {}
    headers = (
        {row.id: row for row in db.exec(select(TransactionHeader).where(col(TransactionHeader.id).in_(header_ids))).all()}
        if header_ids
        else {}
    )
    locations = {row.id: row.name for row in db.exec(select(Location)).all()}
    customers = {row.id: row.name for row in db.exec(select(Company)).all()}
    contexts = []
    for movement in movements:
        header = headers.get(movement.ref_header_id)
        contexts.append(
            _MovementContext(
                movement=movement,
                item=items.get(movement.item_id),
                header=header,
                destination=_destination(header, movement, locations, customers),
            )
        )
    return contexts


def _positive(value: Optional[Decimal]) -> Optional[float]:
    quantity = float(value or 0)
    return quantity if quantity > 0 else None


def stock_movements(
    db: Session,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    movement_type: Optional[str] = None,
    item: Optional[str] = None,
) -> list[MovementRow]:
    statement = select(StockMovement)
    if date_from:
        statement = statement.where(col(StockMovement.created_at) >= datetime.combine(date_from, time.min))
    if date_to:
        statement = statement.where(col(StockMovement.created_at) <= datetime.combine(date_to, time.max))
    statement = statement.order_by(col(StockMovement.created_at).desc(), col(StockMovement.id).desc())
    movements = list(db.exec(statement).all())

    rows = []
    for ctx in _with_context(db, movements):
        movement = ctx.movement
        doc_type = ctx.header.type if ctx.header else "UNKNOWN"
        item_name = ctx.item.name if ctx.item else "Unknown Item"
        if movement_type and doc_type != movement_type:
            continue
        if item and item.lower() not in item_name.lower():
            continue
        qty = float(movement.qty_in or 0) + float(movement.qty_out or 0)
        unit_cost = float(movement.unit_cost or 0)
        rows.append(
            MovementRow(
                id=movement.id,
                timestamp=movement.created_at,
                item_name=item_name,
                item_sku=ctx.item.sku if ctx.item else "UNKNOWN",
                type=doc_type,
                qty_in=_positive(movement.qty_in),
                qty_out=_positive(movement.qty_out),
                destination=ctx.destination,
                unit_cost=unit_cost,
                total_value=qty * unit_cost,
                doc_no=ctx.header.doc_no if ctx.header else None,
            )
        )
    return rows


def movement_type_options(db: Session) -> list[FilterOption]:
    statement = (
        select(TransactionHeader.type)
        .where(col(TransactionHeader.type).in_([HEADER_TYPE_GRN, HEADER_TYPE_ISSUE]))
        .distinct()
        .order_by(col(TransactionHeader.type))
    )
    return [FilterOption(value=value, label=TYPE_LABELS.get(value, value)) for value in db.exec(statement).all()]


def recent_movements(db: Session, limit: int = 10) -> list[RecentMovement]:
    statement = (
        select(StockMovement)
        .order_by(col(StockMovement.created_at).desc(), col(StockMovement.id).desc())
        .limit(limit)
    )
    rows = []
    for ctx in _with_context(db, list(db.exec(statement).all())):
        header = ctx.header
        if header is None:
            display = "-"
        elif header.type == HEADER_TYPE_ISSUE and header.customer_id:
            display = "Transferred"
        else:
            display = TYPE_LABELS.get(header.type, header.type)
        rows.append(
            RecentMovement(
                timestamp=ctx.movement.created_at,
                item_name=ctx.item.name if ctx.item else "Unknown Item",
                destination=ctx.destination,
                qty_in=_positive(ctx.movement.qty_in),
                qty_out=_positive(ctx.movement.qty_out),
                type=display,
                doc_no=header.doc_no if header else None,
            )
        )
    return rows


def _stock_quantities(db: Session) -> tuple[dict[int, float], dict[int, float]]:
    """Return current on-hand and standard cost per item that has a balance row."""

    statement = select(StockBalance.item_id, func.sum(StockBalance.quantity), Item.standard_cost).join(
        Item, col(Item.id) == col(StockBalance.item_id)
    ).group_by(col(StockBalance.item_id), col(Item.standard_cost))
    quantities: dict[int, float] = {}
    costs: dict[int, float] = {}
    for item_id, quantity, cost in db.exec(statement).all():
        quantities[item_id] = float(quantity or 0)
        costs[item_id] = float(cost or 0)
    return quantities, costs


def _stock_value(quantities: dict[int, float], costs: dict[int, float]) -> float:
    return sum(qty * costs.get(item_id, 0.0) for item_id, qty in quantities.items())


def dashboard_stats(db: Session, *, now: Optional[datetime] = None) -> DashboardStats:
    quantities, costs = _stock_quantities(db)

    with_min = db.exec(select(Item).where(col(Item.min_stock).is_not(None))).all()
    below_min = sum(1 for item in with_min if quantities.get(item.id, 0.0) < float(item.min_stock))

    start_of_day = datetime.combine((now or datetime.utcnow()).date(), time.min)
    today = db.exec(select(StockMovement).where(col(StockMovement.created_at) >= start_of_day)).all()
    return DashboardStats(
        stock_value=_stock_value(quantities, costs),
        items_below_min=below_min,
        receipts=sum(1 for m in today if (m.qty_in or ZERO) > 0),
        issues=sum(1 for m in today if (m.qty_out or ZERO) > 0),
    )


def stock_trend(db: Session, *, today: Optional[date] = None) -> list[TrendDay]:
    """Daily movement totals for the last seven days, oldest first.

    The stock value of each past day is rebuilt from the current quantities by
    undoing every movement made on that day or later, priced at today's
    standard cost.
    """

    end = today or datetime.utcnow().date()
    start = end - timedelta(days=TREND_DAYS - 1)
    quantities, costs = _stock_quantities(db)

    window = select(StockMovement, TransactionHeader).join(
        TransactionHeader, col(TransactionHeader.id) == col(StockMovement.ref_header_id)
    ).where(
        col(StockMovement.created_at) >= datetime.combine(start, time.min),
        col(StockMovement.created_at) < datetime.combine(end + timedelta(days=1), time.min),
    )
    by_day: dict[date, list[tuple[StockMovement, TransactionHeader]]] = defaultdict(list)
    for movement, header in db.exec(window).all():
        by_day[movement.created_at.date()].append((movement, header))

    days = [start + timedelta(days=offset) for offset in range(TREND_DAYS)]
    trend = []
    for index, day in enumerate(days):
        qty_in = qty_out = in_value = out_value = transfers = internal = 0.0
        for movement, header in by_day.get(day, []):
            incoming = float(movement.qty_in or 0)
            outgoing = float(movement.qty_out or 0)
            unit_cost = float(movement.unit_cost or 0)
            qty_in += incoming
            qty_out += outgoing
            in_value += incoming * unit_cost
            out_value += outgoing * unit_cost
            if header.type == HEADER_TYPE_ISSUE and outgoing > 0:
                if header.customer_id:
                    transfers += outgoing * unit_cost
                else:
                    internal += outgoing * unit_cost

        if day == end:
            stock_value = _stock_value(quantities, costs)
        else:
            past = dict(quantities)
            for later in days[index:]:
                for movement, _ in by_day.get(later, []):
                    past[movement.item_id] = (
                        past.get(movement.item_id, 0.0) - float(movement.qty_in or 0) + float(movement.qty_out or 0)
                    )
            stock_value = _stock_value(past, costs)

        trend.append(
            TrendDay(
                day=day,
                qty_in=qty_in,
                qty_out=qty_out,
                net=qty_in - qty_out,
                in_value=in_value,
                out_value=out_value,
                net_value=in_value - out_value,
                branch_transfers=transfers,
                internal_usage=internal,
                stock_value=stock_value,
            )
        )
    return trend
