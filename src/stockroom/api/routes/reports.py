from datetime import date
from typing import Optional, TypeVar

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from stockroom.api.deps import get_db, pagination_params
from stockroom.auth import require_permission
from stockroom.core.permissions import REPORTS_VIEW
from stockroom.schemas.common import Page, Pagination
from stockroom.schemas.report import LowStockRow, MovementRow, StockOnHandRow
from stockroom.schemas.user import Principal
from stockroom.services import reports

router = APIRouter(prefix="/reports", tags=["reports"])

T = TypeVar("T")


def _paginate(rows: list[T], pagination: tuple[int, int]) -> tuple[list[T], Pagination]:
    page, limit = pagination
    start = (page - 1) * limit
    return rows[start : start + limit], Pagination.build(page, limit, len(rows))


@router.get("/stock-on-hand", response_model=Page[StockOnHandRow])
def stock_on_hand(
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    status: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    _: Principal = Depends(require_permission(REPORTS_VIEW)),
    db: Session = Depends(get_db),
) -> Page[StockOnHandRow]:
    rows = reports.stock_on_hand(db, search=search, category=category, brand=brand, status=status)
    data, meta = _paginate(rows, pagination)
    options = reports.filter_options(db)
    options["statuses"] = reports.STATUS_OPTIONS
    return Page[StockOnHandRow](data=data, pagination=meta, filter_options=options)


@router.get("/low-stock", response_model=Page[LowStockRow])
def low_stock(
    category: Optional[str] = None,
    brand: Optional[str] = None,
    severity: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    _: Principal = Depends(require_permission(REPORTS_VIEW)),
    db: Session = Depends(get_db),
) -> Page[LowStockRow]:
    rows = reports.low_stock(db, category=category, brand=brand, severity=severity)
    data, meta = _paginate(rows, pagination)
    options = reports.filter_options(db)
    options["severities"] = reports.SEVERITY_OPTIONS
    return Page[LowStockRow](data=data, pagination=meta, filter_options=options)


@router.get("/stock-movements", response_model=Page[MovementRow])
def stock_movements(
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    type: Optional[str] = None,
    item: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    _: Principal = Depends(require_permission(REPORTS_VIEW)),
    db: Session = Depends(get_db),
) -> Page[MovementRow]:
    rows = reports.stock_movements(db, date_from=date_from, date_to=date_to, movement_type=type, item=item)
    data, meta = _paginate(rows, pagination)
    return Page[MovementRow](data=data, pagination=meta, filter_options={"types": reports.movement_type_options(db)})
