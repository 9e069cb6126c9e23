"""Stock balance and movement ledger operations.

Balances are changed with single ``UPDATE ... SET quantity = quantity +/- :qty``
statements so concurrent postings against the same row cannot lose updates.
Every function works inside the caller's session and never commits.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, update
from sqlmodel import Session, col, select

from stockroom.models.base import ZERO, StockBalance, StockMovement


def as_decimal(value: object) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_quantity(value: object) -> str:
    """Render a quantity without trailing zeros, e.g. ``Decimal("3.0000") -> "3"``."""

    normalized = as_decimal(value).normalize()
    return format(normalized, "f")


def find_balance(db: Session, item_id: int, location_id: int, lot_id: Optional[int] = None) -> Optional[StockBalance]:
    statement = select(StockBalance).where(
        StockBalance.item_id == item_id,
        StockBalance.location_id == location_id,
    )
    if lot_id is None:
        statement = statement.where(col(StockBalance.lot_id).is_(None))
    else:
        statement = statement.where(StockBalance.lot_id == lot_id)
    return db.exec(statement).first()


def find_positive_balance(db: Session, item_id: int) -> Optional[StockBalance]:
    """Return the first balance row for *item_id* that holds stock."""

    statement = (
        select(StockBalance)
        .where(StockBalance.item_id == item_id, StockBalance.quantity > 0)
        .order_by(col(StockBalance.id))
    )
    return db.exec(statement).first()


def receive_into_balance(db: Session, item_id: int, location_id: int, qty: Decimal) -> None:
    """Increment the (item, location, NULL lot) balance, creating it on first receipt."""

    result = db.exec(
        update(StockBalance)
        .where(
            col(StockBalance.item_id) == item_id,
            col(StockBalance.location_id) == location_id,
            col(StockBalance.lot_id).is_(None),
        )
        .values(quantity=col(StockBalance.quantity) + qty)
    )
    if result.rowcount == 0:
        db.add(StockBalance(item_id=item_id, location_id=location_id, quantity=qty))
        db.flush()


def draw_from_balance(db: Session, balance_id: int, qty: Decimal) -> bool:
    """Decrement a balance row only when it still holds at least *qty*.

    Returns ``False`` when the row no longer has enough stock, in which case
    nothing is changed.
    """

    result = db.exec(
        update(StockBalance)
        .where(col(StockBalance.id) == balance_id, col(StockBalance.quantity) >= qty)
        .values(quantity=col(StockBalance.quantity) - qty)
    )
    return result.rowcount == 1


def total_on_hand(db: Session, item_id: int) -> Decimal:
    statement = select(func.coalesce(func.sum(StockBalance.quantity), 0)).where(StockBalance.item_id == item_id)
    return as_decimal(db.exec(statement).one())


def on_hand_by_item(db: Session, item_ids: Optional[Iterable[int]] = None) -> dict[int, Decimal]:
    statement = select(StockBalance.item_id, func.sum(StockBalance.quantity)).group_by(StockBalance.item_id)
    if item_ids is not None:
        statement = statement.where(col(StockBalance.item_id).in_(list(item_ids)))
    return {item_id: as_decimal(quantity) for item_id, quantity in db.exec(statement).all()}


def record_movement(
    db: Session,
    *,
    item_id: int,
    header_id: int,
    line_id: int,
    unit_cost: Decimal,
    qty_in: Optional[Decimal] = None,
    qty_out: Optional[Decimal] = None,
    src_location_id: Optional[int] = None,
    dst_location_id: Optional[int] = None,
) -> StockMovement:
    """Append one ledger entry; exactly one of *qty_in* / *qty_out* must be given."""

    if (qty_in is None) == (qty_out is None):
        raise ValueError("A movement carries either qty_in or qty_out")
    movement = StockMovement(
        item_id=item_id,
        src_location_id=src_location_id,
        dst_location_id=dst_location_id,
        qty_in=qty_in,
        qty_out=qty_out,
        unit_cost=unit_cost,
        ref_header_id=header_id,
        ref_line_id=line_id,
    )
    db.add(movement)
    db.flush()
    return movement
