"""Goods receipt (GRN) and stock issue posting.

Each posting runs as one database transaction: every line writes a document
line, a ledger entry and a balance change, and a failure on any line rolls the
whole document back. The audit record is written after the commit and can
never fail the posting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from sqlmodel import Session, col, select

from stockroom.core.errors import InsufficientStock, InvalidInput
from stockroom.core.logging_config import get_logger
from stockroom.models.base import (
    COMPANY_TYPE_CUSTOMER,
    COMPANY_TYPE_SUPPLIER,
    HEADER_TYPE_GRN,
    HEADER_TYPE_ISSUE,
    ZERO,
    Brand,
    Category,
    Company,
    Item,
    Location,
    TransactionHeader,
    TransactionLine,
)
from stockroom.schemas.posting import (
    LINE_POSTED,
    LINE_SKIPPED,
    IssueRequest,
    LineOutcome,
    ReceiptRequest,
)
from stockroom.services import ledger
from stockroom.services.audit import AuditEntry, AuditSink, emit_audit
from stockroom.services.costing import next_standard_cost

logger = get_logger(__name__)

SKIP_INVALID = "qty must be positive and itemId is required"
SKIP_UNKNOWN_ITEM = "item not found"


@dataclass(frozen=True)
class PostingContext:
    """Who is posting, and from where."""

    actor_id: int
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class PostingResult:
    header_id: int
    doc_no: str
    lines: list[LineOutcome] = field(default_factory=list)


def generate_doc_no(doc_type: str) -> str:
    return f"{doc_type}-{datetime.utcnow():%Y%m%d%H%M%S}-{uuid4().hex[:6].upper()}"


def _is_postable(item_id: Optional[int], qty: Optional[Decimal]) -> bool:
    return bool(item_id) and qty is not None and qty > 0


def _resolve_company(
    db: Session, company_id: Optional[int], name: Optional[str], company_type: str
) -> Optional[int]:
    if company_id:
        company = db.get(Company, company_id)
        if company is None or company.type != company_type:
            raise InvalidInput(f"{company_type.title()} {company_id} not found")
        return company_id
    if name:
        statement = select(Company).where(Company.name == name.strip(), Company.type == company_type)
        company = db.exec(statement).first()
        return company.id if company else None
    return None


def _resolve_receipt_location(db: Session, location_id: Optional[int]) -> Location:
    if location_id:
        location = db.get(Location, location_id)
        if location is None or not location.is_active:
            raise InvalidInput(f"Location {location_id} not found")
        return location
    statement = select(Location).where(col(Location.is_active).is_(True)).order_by(col(Location.id))
    location = db.exec(statement).first()
    if location is None:
        raise InvalidInput("No active location found")
    return location


def _open_header(db: Session, doc_type: str, context: PostingContext, **counterparty: Optional[int]) -> TransactionHeader:
    header = TransactionHeader(doc_no=generate_doc_no(doc_type), type=doc_type, created_by=context.actor_id, **counterparty)
    db.add(header)
    db.flush()
    return header


def _item_detail(db: Session, item: Item, qty: Decimal, unit_cost: Decimal) -> dict[str, Any]:
    brand = db.get(Brand, item.brand_id) if item.brand_id else None
    category = db.get(Category, item.category_id) if item.category_id else None
    return {
        "itemName": item.name,
        "itemSku": item.sku,
        "brand": brand.name if brand else "N/A",
        "category": category.name if category else "N/A",
        "quantity": float(qty),
        "unitCost": float(unit_cost),
        "totalAmount": float(qty * unit_cost),
    }


def _require_lines(lines: list[Any]) -> None:
    if not lines:
        raise InvalidInput("lines are required")
    if not any(_is_postable(line.item_id, line.qty) for line in lines):
        raise InvalidInput("No valid lines to post")


def post_receipt(db: Session, context: PostingContext, request: ReceiptRequest, audit: AuditSink) -> PostingResult:
    """Post a goods receipt and return the created document."""

    _require_lines(request.lines)

    try:
        supplier_id = _resolve_company(db, request.supplier_id, request.supplier_name, COMPANY_TYPE_SUPPLIER)
        location = _resolve_receipt_location(db, request.location_id)

        header: Optional[TransactionHeader] = None
        outcomes: list[LineOutcome] = []
        details: list[dict[str, Any]] = []
        for index, line in enumerate(request.lines):
            if not _is_postable(line.item_id, line.qty):
                outcomes.append(LineOutcome(index=index, item_id=line.item_id, status=LINE_SKIPPED, reason=SKIP_INVALID))
                continue
            item = db.get(Item, line.item_id)
            if item is None:
                outcomes.append(
                    LineOutcome(index=index, item_id=line.item_id, status=LINE_SKIPPED, reason=SKIP_UNKNOWN_ITEM)
                )
                continue
            if header is None:
                header = _open_header(db, HEADER_TYPE_GRN, context, supplier_id=supplier_id)

            qty = ledger.as_decimal(line.qty)
            unit_cost = ledger.as_decimal(line.unit_cost)
            txn_line = TransactionLine(
                header_id=header.id,
                item_id=item.id,
                uom_id=item.base_uom_id,
                location_id=location.id,
                qty=qty,
                unit_cost=unit_cost,
            )
            db.add(txn_line)
            db.flush()

            ledger.record_movement(
                db,
                item_id=item.id,
                header_id=header.id,
                line_id=txn_line.id,
                unit_cost=unit_cost,
                qty_in=qty,
                dst_location_id=location.id,
            )
            ledger.receive_into_balance(db, item.id, location.id, qty)

            on_hand = ledger.total_on_hand(db, item.id)
            item.standard_cost = next_standard_cost(ledger.as_decimal(item.standard_cost), unit_cost, on_hand)
            item.updated_at = datetime.utcnow()
            db.add(item)

            outcomes.append(LineOutcome(index=index, item_id=item.id, status=LINE_POSTED, line_id=txn_line.id))
            details.append(_item_detail(db, item, qty, unit_cost))

        if header is None:
            raise InvalidInput("No valid lines to post")
        result = PostingResult(header_id=header.id, doc_no=header.doc_no, lines=outcomes)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Posted GRN %s (%d line(s)) by user %s", result.doc_no, len(details), context.actor_id)
    emit_audit(
        audit,
        AuditEntry(
            actor_id=context.actor_id,
            action="CREATE",
            entity="GRN",
            entity_id=result.header_id,
            detail={
                "docNo": result.doc_no,
                "supplierId": supplier_id,
                "locationId": location.id,
                "itemCount": len(details),
                "totalValue": sum(entry["totalAmount"] for entry in details),
                "items": details,
            },
            ip=context.ip,
            user_agent=context.user_agent,
        ),
    )
    return result


def post_issue(db: Session, context: PostingContext, request: IssueRequest, audit: AuditSink) -> PostingResult:
    """Post a stock issue, refusing the whole document if any line lacks stock."""

    _require_lines(request.lines)

    try:
        customer_id = _resolve_company(db, request.customer_id, request.customer_name, COMPANY_TYPE_CUSTOMER)

        header: Optional[TransactionHeader] = None
        outcomes: list[LineOutcome] = []
        details: list[dict[str, Any]] = []
        for index, line in enumerate(request.lines):
            if not _is_postable(line.item_id, line.qty):
                outcomes.append(LineOutcome(index=index, item_id=line.item_id, status=LINE_SKIPPED, reason=SKIP_INVALID))
                continue
            qty = ledger.as_decimal(line.qty)
            item = db.get(Item, line.item_id)
            if item is None:
                raise InsufficientStock(f"item #{line.item_id}", 0)

            if request.location_id:
                balance = ledger.find_balance(db, item.id, request.location_id)
            else:
                balance = ledger.find_positive_balance(db, item.id)
            on_hand = ledger.as_decimal(balance.quantity) if balance else ZERO
            if balance is None or on_hand < qty:
                raise InsufficientStock(item.name, ledger.format_quantity(on_hand))

            if header is None:
                header = _open_header(db, HEADER_TYPE_ISSUE, context, customer_id=customer_id)

            unit_cost = ledger.as_decimal(item.standard_cost)
            txn_line = TransactionLine(
                header_id=header.id,
                item_id=item.id,
                uom_id=item.base_uom_id,
                location_id=balance.location_id,
                qty=qty,
                unit_cost=unit_cost,
            )
            db.add(txn_line)
            db.flush()

            ledger.record_movement(
                db,
                item_id=item.id,
                header_id=header.id,
                line_id=txn_line.id,
                unit_cost=unit_cost,
                qty_out=qty,
                src_location_id=balance.location_id,
            )
            if not ledger.draw_from_balance(db, balance.id, qty):
                db.refresh(balance)
                raise InsufficientStock(item.name, ledger.format_quantity(balance.quantity))

            outcomes.append(LineOutcome(index=index, item_id=item.id, status=LINE_POSTED, line_id=txn_line.id))
            details.append(_item_detail(db, item, qty, unit_cost))

        if header is None:
            raise InvalidInput("No valid lines to post")
        result = PostingResult(header_id=header.id, doc_no=header.doc_no, lines=outcomes)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Posted ISSUE %s (%d line(s)) by user %s", result.doc_no, len(details), context.actor_id)
    emit_audit(
        audit,
        AuditEntry(
            actor_id=context.actor_id,
            action="CREATE",
            entity="ISSUE",
            entity_id=result.header_id,
            detail={
                "docNo": result.doc_no,
                "customerId": customer_id,
                "locationId": request.location_id,
                "itemCount": len(details),
                "totalValue": sum(entry["totalAmount"] for entry in details),
                "items": details,
            },
            ip=context.ip,
            user_agent=context.user_agent,
        ),
    )
    return result
