from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from .common import CamelModel

LINE_POSTED = "posted"
LINE_SKIPPED = "skipped"


class ReceiptLineIn(CamelModel):
    item_id: Optional[int] = None
    qty: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None


class ReceiptRequest(CamelModel):
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    location_id: Optional[int] = None
    lines: List[ReceiptLineIn]


class IssueLineIn(CamelModel):
    item_id: Optional[int] = None
    qty: Optional[Decimal] = None


class IssueRequest(CamelModel):
    location_id: Optional[int] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    lines: List[IssueLineIn]


class LineOutcome(CamelModel):
    index: int
    item_id: Optional[int] = None
    status: str = LINE_POSTED
    reason: Optional[str] = None
    line_id: Optional[int] = None


class PostingResponse(CamelModel):
    ok: bool = True
    header_id: int
    doc_no: str
    lines: List[LineOutcome] = Field(default_factory=list)


class TransactionLineRead(CamelModel):
    id: int
    item_id: int
    item_name: Optional[str] = None
    uom_id: int
    location_id: Optional[int] = None
    qty: float
    unit_cost: float


class TransactionRead(CamelModel):
    id: int
    doc_no: str
    type: str
    status: str
    supplier_id: Optional[int] = None
    customer_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    lines: List[TransactionLineRead] = Field(default_factory=list)
