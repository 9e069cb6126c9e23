from fastapi import APIRouter, Depends, Request
from sqlmodel import Session, select

from stockroom.api.deps import get_audit_sink, get_db
from stockroom.auth import client_ip, require_permission
from stockroom.core.errors import InternalError, NotFound, StockroomError
from stockroom.core.logging_config import get_logger
from stockroom.core.permissions import TRANSACTIONS_CREATE, TRANSACTIONS_VIEW
from stockroom.models.base import Item, TransactionHeader, TransactionLine
from stockroom.schemas.posting import (
    IssueRequest,
    PostingResponse,
    ReceiptRequest,
    TransactionLineRead,
    TransactionRead,
)
from stockroom.schemas.user import Principal
from stockroom.services.audit import AuditSink
from stockroom.services.posting import PostingContext, PostingResult, post_issue, post_receipt

router = APIRouter(tags=["transactions"])
logger = get_logger(__name__)


def _context(request: Request, principal: Principal) -> PostingContext:
    return PostingContext(
        actor_id=principal.id,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def _response(result: PostingResult) -> PostingResponse:
    return PostingResponse(header_id=result.header_id, doc_no=result.doc_no, lines=result.lines)


@router.post("/grn", response_model=PostingResponse)
def create_grn(
    payload: ReceiptRequest,
    request: Request,
    principal: Principal = Depends(require_permission(TRANSACTIONS_CREATE)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> PostingResponse:
    try:
        result = post_receipt(db, _context(request, principal), payload, audit)
    except StockroomError:
        raise
    except Exception as exc:
        logger.exception("GRN posting failed")
        raise InternalError("Failed to post GRN") from exc
    return _response(result)


@router.post("/issue", response_model=PostingResponse)
def create_issue(
    payload: IssueRequest,
    request: Request,
    principal: Principal = Depends(require_permission(TRANSACTIONS_CREATE)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> PostingResponse:
    try:
        result = post_issue(db, _context(request, principal), payload, audit)
    except StockroomError:
        raise
    except Exception as exc:
        logger.exception("Issue posting failed")
        raise InternalError("Failed to post Issue") from exc
    return _response(result)


@router.get("/transactions/{header_id}", response_model=TransactionRead)
def get_transaction(
    header_id: int,
    _: Principal = Depends(require_permission(TRANSACTIONS_VIEW)),
    db: Session = Depends(get_db),
) -> TransactionRead:
    header = db.get(TransactionHeader, header_id)
    if header is None:
        raise NotFound("Transaction not found")
    statement = (
        select(TransactionLine, Item)
        .join(Item, Item.id == TransactionLine.item_id)
        .where(TransactionLine.header_id == header_id)
        .order_by(TransactionLine.id)
    )
    lines = [
        TransactionLineRead(
            id=line.id,
            item_id=line.item_id,
            item_name=item.name,
            uom_id=line.uom_id,
            location_id=line.location_id,
            qty=float(line.qty),
            unit_cost=float(line.unit_cost),
        )
        for line, item in db.exec(statement).all()
    ]
    return TransactionRead(
        id=header.id,
        doc_no=header.doc_no,
        type=header.type,
        status=header.status,
        supplier_id=header.supplier_id,
        customer_id=header.customer_id,
        created_by=header.created_by,
        created_at=header.created_at,
        lines=lines,
    )
