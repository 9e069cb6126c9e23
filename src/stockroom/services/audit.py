"""Audit trail writing and visibility rules.

Audit records are a side channel: ``emit_audit`` never lets a failing sink
reach the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from stockroom.core import permissions
from stockroom.core.logging_config import get_logger
from stockroom.models.base import AuditLog, Role, User

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    actor_id: int
    action: str
    entity: str
    entity_id: Optional[Any] = None
    detail: Any = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class AuditSink(Protocol):
    def write(self, entry: AuditEntry) -> None: ...


class NullAuditSink:
    """Discards every entry."""

    def write(self, entry: AuditEntry) -> None:
        return None


class DatabaseAuditSink:
    """Stores entries in ``audit_log`` using a session of its own."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def write(self, entry: AuditEntry) -> None:
        detail = entry.detail
        if detail is not None and not isinstance(detail, str):
            detail = json.dumps(detail, default=str)
        with Session(self.engine) as session:
            session.add(
                AuditLog(
                    actor_id=entry.actor_id,
                    action=entry.action,
                    entity=entry.entity,
                    entity_id=str(entry.entity_id) if entry.entity_id is not None else None,
                    detail=detail,
                    ip=entry.ip or "unknown",
                    user_agent=entry.user_agent or "unknown",
                )
            )
            session.commit()


def emit_audit(sink: AuditSink, entry: AuditEntry) -> None:
    try:
        sink.write(entry)
    except Exception:
        logger.exception("Failed to write audit log %s %s:%s", entry.action, entry.entity, entry.entity_id)


def parse_detail(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def visible_actor_ids(db: Session, actor_id: int, role_name: str) -> Optional[list[int]]:
    """Return the actor ids whose logs *actor_id* may read, ``None`` meaning all.

    Admins see everything, viewers see what managers did, everybody else sees
    their own activity.
    """

    role = role_name.upper()
    if role == permissions.ADMIN_ROLE.upper():
        return None
    if role == permissions.VIEWER_ROLE.upper():
        statement = (
            select(User.id)
            .join(Role, col(Role.id) == col(User.role_id))
            .where(col(Role.name).ilike(permissions.MANAGER_ROLE))
        )
        return list(db.exec(statement).all())
    return [actor_id]
