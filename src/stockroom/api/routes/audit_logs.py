from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, col, func, select

from stockroom.api.deps import get_db, pagination_params
from stockroom.auth import get_current_user
from stockroom.core.permissions import ADMIN_ROLE
from stockroom.models.base import AuditLog, Role, User
from stockroom.schemas.audit import AuditAction, AuditActor, AuditLogPage, AuditLogRead
from stockroom.schemas.common import Pagination
from stockroom.schemas.user import Principal
from stockroom.services.audit import parse_detail, visible_actor_ids

router = APIRouter(prefix="/audit-logs", tags=["audit"])


def _visibility(db: Session, principal: Principal, user_id: Optional[int]) -> list:
    conditions = []
    actor_ids = visible_actor_ids(db, principal.id, principal.role.name)
    if actor_ids is not None:
        conditions.append(col(AuditLog.actor_id).in_(actor_ids))
    if user_id:
        # only admins may look at somebody else's activity
        if principal.role.name.upper() == ADMIN_ROLE.upper() or user_id == principal.id:
            conditions.append(AuditLog.actor_id == user_id)
        else:
            conditions.append(AuditLog.actor_id == principal.id)
    return conditions


@router.get("", response_model=AuditLogPage)
def list_audit_logs(
    action: Optional[str] = None,
    search: Optional[str] = None,
    user_id: Optional[int] = Query(None, alias="userId"),
    pagination: tuple[int, int] = Depends(pagination_params),
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuditLogPage:
    page, limit = pagination
    conditions = _visibility(db, principal, user_id)
    if action:
        action_name, _, entity = action.partition("-")
        conditions.append(AuditLog.action == action_name)
        if entity:
            conditions.append(AuditLog.entity == entity)
    if search:
        pattern = f"%{search}%"
        conditions.append(
            col(AuditLog.action).ilike(pattern)
            | col(AuditLog.entity).ilike(pattern)
            | col(AuditLog.detail).ilike(pattern)
            | col(User.name).ilike(pattern)
            | col(User.email).ilike(pattern)
        )

    joined = (
        select(AuditLog, User, Role)
        .join(User, col(User.id) == col(AuditLog.actor_id))
        .join(Role, col(Role.id) == col(User.role_id))
        .where(*conditions)
    )
    total = db.exec(
        select(func.count(AuditLog.id)).join(User, col(User.id) == col(AuditLog.actor_id)).where(*conditions)
    ).one()
    rows = db.exec(
        joined.order_by(col(AuditLog.created_at).desc(), col(AuditLog.id).desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    logs = [
        AuditLogRead(
            id=log.id,
            action=log.action,
            entity=log.entity,
            entity_id=log.entity_id,
            details=parse_detail(log.detail),
            timestamp=log.created_at,
            ip_address=log.ip,
            user_agent=log.user_agent,
            user=AuditActor(name=user.name, email=user.email, role=role.name),
        )
        for log, user, role in rows
    ]
    return AuditLogPage(
        logs=logs,
        pagination=Pagination.build(page, limit, total),
        user_role=principal.role.name.upper(),
    )


@router.get("/actions", response_model=list[AuditAction])
def list_audit_actions(
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AuditAction]:
    statement = (
        select(AuditLog.action, AuditLog.entity)
        .where(*_visibility(db, principal, None))
        .distinct()
        .order_by(col(AuditLog.action), col(AuditLog.entity))
    )
    return [AuditAction(action=action, entity=entity) for action, entity in db.exec(statement).all()]
