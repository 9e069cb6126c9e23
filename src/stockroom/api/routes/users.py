from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session, col, func, select

from stockroom import security
from stockroom.api.deps import get_audit_sink, get_db, pagination_params
from stockroom.auth import client_ip, require_permission
from stockroom.core.errors import InvalidInput, NotFound
from stockroom.core.logging_config import get_logger
from stockroom.core.permissions import USERS_CREATE, USERS_DELETE, USERS_UPDATE, USERS_VIEW
from stockroom.models.base import Role, User
from stockroom.schemas.common import Ok, Pagination
from stockroom.schemas.user import Principal, RoleRead, RoleRef, UserCreate, UserList, UserRead, UserUpdate
from stockroom.services import bootstrap
from stockroom.services.audit import AuditEntry, AuditSink, emit_audit

router = APIRouter(tags=["users"])
logger = get_logger(__name__)


def _to_read(user: User, role: Optional[Role]) -> UserRead:
    return UserRead(
        id=user.id,
        name=user.name,
        email=user.email,
        role=RoleRef(id=role.id, name=role.name) if role else None,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _live_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFound("User not found")
    return user


def _require_role(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise InvalidInput("Invalid role")
    return role


def _audit(audit: AuditSink, request: Request, actor: Principal, action: str, user_id: int, detail: str) -> None:
    emit_audit(
        audit,
        AuditEntry(
            actor_id=actor.id,
            action=action,
            entity="user",
            entity_id=user_id,
            detail=detail,
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        ),
    )


@router.get("/users", response_model=UserList)
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    _: Principal = Depends(require_permission(USERS_VIEW)),
    db: Session = Depends(get_db),
) -> UserList:
    page, limit = pagination
    conditions = [col(User.deleted_at).is_(None)]
    if search:
        pattern = f"%{search}%"
        conditions.append(col(User.name).ilike(pattern) | col(User.email).ilike(pattern))
    if role:
        conditions.append(col(Role.name) == role)

    base = select(User, Role).join(Role, col(Role.id) == col(User.role_id)).where(*conditions)
    total = db.exec(
        select(func.count(User.id)).join(Role, col(Role.id) == col(User.role_id)).where(*conditions)
    ).one()
    rows = db.exec(
        base.order_by(col(User.created_at).desc(), col(User.id).desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    return UserList(
        users=[_to_read(user, user_role) for user, user_role in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    principal: Principal = Depends(require_permission(USERS_CREATE)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> UserRead:
    role = _require_role(db, payload.role_id)
    try:
        user = bootstrap.create_user(
            db,
            name=payload.name.strip(),
            email=payload.email,
            password=payload.password,
            role_id=role.id,
            is_active=payload.is_active,
        )
    except bootstrap.DuplicateEmailError as exc:
        raise InvalidInput("Email already exists") from exc
    db.commit()
    db.refresh(user)
    logger.info("User %s created %s", principal.id, user.email)
    _audit(audit, request, principal, "USER_CREATED", user.id, f"Created user: {user.name} ({user.email}) with role: {role.name}")
    return _to_read(user, role)


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    _: Principal = Depends(require_permission(USERS_VIEW)),
    db: Session = Depends(get_db),
) -> UserRead:
    user = _live_user(db, user_id)
    return _to_read(user, db.get(Role, user.role_id))


@router.put("/users/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    principal: Principal = Depends(require_permission(USERS_UPDATE)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> UserRead:
    user = _live_user(db, user_id)
    changes = []
    if payload.email is not None:
        email = payload.email.strip().lower()
        if email != user.email:
            if db.exec(select(User).where(User.email == email)).first():
                raise InvalidInput("Email already exists")
            user.email = email
            changes.append("email")
    if payload.role_id is not None and payload.role_id != user.role_id:
        user.role_id = _require_role(db, payload.role_id).id
        changes.append("role")
    if payload.name is not None and payload.name.strip() != user.name:
        user.name = payload.name.strip()
        changes.append("name")
    if payload.is_active is not None and payload.is_active != user.is_active:
        user.is_active = payload.is_active
        changes.append("status")
    if payload.password:
        user.hashed_password = security.hash_password(payload.password)
        changes.append("password")

    user.updated_at = datetime.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    detail = f"Updated user: {user.name} ({user.email})"
    if changes:
        detail += f"; changed {', '.join(changes)}"
    _audit(audit, request, principal, "USER_UPDATED", user.id, detail)
    return _to_read(user, db.get(Role, user.role_id))


@router.delete("/users/{user_id}", response_model=Ok)
def delete_user(
    user_id: int,
    request: Request,
    principal: Principal = Depends(require_permission(USERS_DELETE)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> Ok:
    if user_id == principal.id:
        raise InvalidInput("Cannot delete your own account")
    user = _live_user(db, user_id)
    user.deleted_at = datetime.utcnow()
    user.is_active = False
    db.add(user)
    db.commit()
    logger.info("User %s soft-deleted %s", principal.id, user.email)
    _audit(audit, request, principal, "USER_DELETED", user.id, f"Deleted user: {user.name} ({user.email})")
    return Ok(message="User deleted successfully")


@router.get("/roles", response_model=list[RoleRead])
def list_roles(
    _: Principal = Depends(require_permission(USERS_VIEW)),
    db: Session = Depends(get_db),
) -> list[RoleRead]:
    return [RoleRead.model_validate(role) for role in db.exec(select(Role).order_by(col(Role.name))).all()]
