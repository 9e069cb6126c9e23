from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response
from sqlmodel import Session

from stockroom import security
from stockroom.api.deps import get_audit_sink, get_db
from stockroom.auth import (
    authenticate_user,
    client_ip,
    end_session,
    get_current_user,
    load_principal,
    start_session,
)
from stockroom.core.errors import InvalidInput, NotFound, Unauthorized
from stockroom.core.logging_config import get_logger
from stockroom.models.base import User
from stockroom.schemas.common import Ok
from stockroom.schemas.user import ChangePasswordRequest, CurrentUser, LoginRequest, Principal
from stockroom.services.audit import AuditEntry, AuditSink, emit_audit

router = APIRouter(tags=["auth"])
logger = get_logger(__name__)


@router.post("/auth/login", response_model=CurrentUser)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> CurrentUser:
    if not payload.email or not payload.password:
        raise InvalidInput("Email and password are required")
    user = authenticate_user(db, payload.email, payload.password)
    if user is None:
        logger.info("Rejected login for %s", payload.email)
        raise Unauthorized("Invalid credentials")
    start_session(response, user.id)
    return CurrentUser(user=load_principal(db, user.id))


@router.post("/auth/logout", response_model=Ok)
def logout(response: Response) -> Ok:
    end_session(response)
    return Ok(message="Logged out")


@router.post("/auth/change-password", response_model=Ok)
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> Ok:
    user = db.get(User, principal.id)
    if user is None:
        raise NotFound("User not found")
    if not security.verify_password(payload.current_password, user.hashed_password):
        raise InvalidInput("Current password is incorrect")
    user.hashed_password = security.hash_password(payload.new_password)
    user.updated_at = datetime.utcnow()
    db.add(user)
    db.commit()

    emit_audit(
        audit,
        AuditEntry(
            actor_id=principal.id,
            action="PASSWORD_CHANGED",
            entity="user",
            entity_id=principal.id,
            detail="User password was successfully updated",
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        ),
    )
    return Ok(message="Password changed successfully")


@router.get("/user/current", response_model=CurrentUser)
def current_user(principal: Principal = Depends(get_current_user)) -> CurrentUser:
    return CurrentUser(user=principal)
