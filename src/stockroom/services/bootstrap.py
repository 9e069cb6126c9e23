"""Default data: roles, the MAIN location and an administrator account."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from stockroom import security
from stockroom.core import permissions
from stockroom.core.logging_config import get_logger
from stockroom.models.base import Role, User
from stockroom.services.catalog import ensure_default_location

logger = get_logger(__name__)


class DuplicateEmailError(RuntimeError):
    """Raised when trying to create a user with an existing email."""


def seed_roles(db: Session) -> dict[str, Role]:
    roles: dict[str, Role] = {}
    for name, granted in permissions.DEFAULT_ROLES.items():
        role = db.exec(select(Role).where(Role.name == name)).first()
        if role is None:
            role = Role(name=name, permissions=list(granted))
            db.add(role)
            db.flush()
            logger.info("Created role %s", name)
        roles[name] = role
    return roles


def seed_defaults(db: Session) -> None:
    seed_roles(db)
    ensure_default_location(db)
    db.commit()


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role_id: int,
    is_active: bool = True,
) -> User:
    email = email.strip().lower()
    if db.exec(select(User).where(User.email == email)).first():
        raise DuplicateEmailError(f"Email '{email}' already exists")
    user = User(
        name=name,
        email=email,
        hashed_password=security.hash_password(password),
        role_id=role_id,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    return user


def create_admin(db: Session, *, name: str, email: str, password: str) -> User:
    roles = seed_roles(db)
    user = create_user(db, name=name, email=email, password=password, role_id=roles[permissions.ADMIN_ROLE].id)
    db.commit()
    db.refresh(user)
    return user


def find_role(db: Session, name: str) -> Optional[Role]:
    return db.exec(select(Role).where(Role.name == name)).first()
