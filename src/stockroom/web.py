"""Server-rendered pages: login, dashboard and the stock-on-hand report."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import Session

from stockroom.api.deps import get_db, pagination_params
from stockroom.auth import authenticate_user, end_session, resolve_principal, start_session
from stockroom.core.logging_config import get_logger
from stockroom.core.permissions import DASHBOARD_VIEW, REPORTS_VIEW
from stockroom.schemas.common import Pagination
from stockroom.schemas.user import Principal
from stockroom.services import reports

router = APIRouter(prefix="/web", include_in_schema=False)
_templates_dir = Path(__file__).with_name("templates")
templates = Jinja2Templates(directory=str(_templates_dir))
logger = get_logger(__name__)

_ERRORS = {
    "login_required": "Please sign in to continue.",
    "forbidden": "Your role does not allow access to that page.",
}


def _login_redirect(reason: str = "login_required") -> RedirectResponse:
    return RedirectResponse(url=f"/web/login?error={reason}", status_code=status.HTTP_303_SEE_OTHER)


def _principal_with(request: Request, db: Session, permission: str) -> tuple[Optional[Principal], Optional[RedirectResponse]]:
    principal = resolve_principal(request, db)
    if principal is None:
        return None, _login_redirect()
    if not principal.can(permission):
        return None, _login_redirect("forbidden")
    return principal, None


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, db: Session = Depends(get_db)):
    if resolve_principal(request, db) is not None:
        return RedirectResponse(url="/web/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    error = _ERRORS.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(request, "login.html", {"error": error})


@router.post("/login")
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = authenticate_user(db, email, password)
    if user is None:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": "Invalid email or password."},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    response = RedirectResponse(url="/web/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    start_session(response, user.id)
    logger.info("User %s signed in through the web pages", user.id)
    return response


@router.get("/logout")
def logout() -> RedirectResponse:
    response = RedirectResponse(url="/web/login", status_code=status.HTTP_303_SEE_OTHER)
    end_session(response)
    return response


@router.get("/")
def index(request: Request, db: Session = Depends(get_db)) -> RedirectResponse:
    target = "/web/dashboard" if resolve_principal(request, db) else "/web/login"
    return RedirectResponse(url=target, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, db: Session = Depends(get_db)):
    principal, redirect = _principal_with(request, db, DASHBOARD_VIEW)
    if redirect is not None:
        return redirect
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "current_user": principal,
            "stats": reports.dashboard_stats(db),
            "movements": reports.recent_movements(db, limit=10),
            "trend": reports.stock_trend(db),
        },
    )


@router.get("/reports/stock-on-hand", response_class=HTMLResponse)
def stock_on_hand_page(
    request: Request,
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    stock_status: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
):
    principal, redirect = _principal_with(request, db, REPORTS_VIEW)
    if redirect is not None:
        return redirect
    rows = reports.stock_on_hand(db, search=search, category=category, brand=brand, status=stock_status or None)
    page, limit = pagination
    start = (page - 1) * limit
    return templates.TemplateResponse(
        request,
        "stock_on_hand.html",
        {
            "current_user": principal,
            "rows": rows[start : start + limit],
            "pagination": Pagination.build(page, limit, len(rows)),
            "filters": {"search": search or "", "category": category or "", "brand": brand or "", "status": stock_status or ""},
            "options": reports.filter_options(db),
            "statuses": reports.STATUS_OPTIONS,
        },
    )
