from datetime import datetime
from typing import Any, List, Optional

from .common import CamelModel, Pagination


class AuditActor(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class AuditLogRead(CamelModel):
    id: int
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: Any = None
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    user: AuditActor


class AuditLogPage(CamelModel):
    logs: List[AuditLogRead]
    pagination: Pagination
    user_role: str


class AuditAction(CamelModel):
    action: str
    entity: str
