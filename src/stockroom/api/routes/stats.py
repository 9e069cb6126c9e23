from fastapi import APIRouter, Depends
from sqlmodel import Session

from stockroom.api.deps import get_db
from stockroom.auth import require_permission
from stockroom.core.permissions import DASHBOARD_VIEW
from stockroom.schemas.report import DashboardStats, RecentMovement, TrendDay
from stockroom.schemas.user import Principal
from stockroom.services import reports

router = APIRouter(tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(
    _: Principal = Depends(require_permission(DASHBOARD_VIEW)),
    db: Session = Depends(get_db),
) -> DashboardStats:
    return reports.dashboard_stats(db)


@router.get("/stats/trend", response_model=list[TrendDay])
def get_trend(
    _: Principal = Depends(require_permission(DASHBOARD_VIEW)),
    db: Session = Depends(get_db),
) -> list[TrendDay]:
    return reports.stock_trend(db)


@router.get("/movements", response_model=list[RecentMovement])
def recent_movements(
    limit: int = 10,
    _: Principal = Depends(require_permission(DASHBOARD_VIEW)),
    db: Session = Depends(get_db),
) -> list[RecentMovement]:
    return reports.recent_movements(db, limit=max(1, min(limit, 100)))
