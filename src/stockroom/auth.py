"""Authentication helpers for API and web handlers."""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request, Response
from sqlmodel import Session, select

from stockroom import security
from stockroom.api.deps import get_db
from stockroom.core.config import get_settings
from stockroom.core.errors import Forbidden, Unauthorized
from stockroom.models.base import Role, User
from stockroom.schemas.user import Principal, RoleRef

SESSION_COOKIE = "stockroom_session"


def _is_usable(user: Optional[User]) -> bool:
    return user is not None and user.is_active and user.deleted_at is None


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the matching user when the credentials are valid."""

    user = db.exec(select(User).where(User.email == email.strip().lower())).first()
    if not _is_usable(user):
        return None
    if not security.verify_password(password, user.hashed_password):
        return None
    return user


def load_principal(db: Session, user_id: int) -> Optional[Principal]:
    user = db.get(User, user_id)
    if not _is_usable(user):
        return None
    role = db.get(Role, user.role_id)
    if role is None:
        return None
    return Principal(
        id=user.id,
        name=user.name,
        email=user.email,
        role=RoleRef(id=role.id, name=role.name),
        permissions=list(role.permissions or []),
        is_active=user.is_active,
    )


def resolve_principal(request: Request, db: Session) -> Optional[Principal]:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    settings = get_settings()
    user_id = security.read_session(token, settings.secret_key, settings.session_max_age)
    if user_id is None:
        return None
    return load_principal(db, user_id)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Principal:
    """Require an authenticated, active user from the session cookie."""

    principal = resolve_principal(request, db)
    if principal is None:
        raise Unauthorized("Unauthorized")
    return principal


def require_permission(permission: str) -> Callable[..., Principal]:
    """Build a dependency that also checks the principal's role grants *permission*."""

    def dependency(principal: Principal = Depends(get_current_user)) -> Principal:
        if not principal.can(permission):
            raise Forbidden("Insufficient permissions", required=permission, userRole=principal.role.name)
        return principal

    return dependency


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def start_session(response: Response, user_id: int) -> None:
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE,
        value=security.issue_session(user_id, settings.secret_key),
        httponly=True,
        samesite="lax",
        max_age=settings.session_max_age,
    )


def end_session(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE)
