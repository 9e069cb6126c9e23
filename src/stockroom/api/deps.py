from typing import Generator

from sqlmodel import Session

from stockroom.core.config import get_settings
from stockroom.db.session import engine, session_scope
from stockroom.services.audit import AuditSink, DatabaseAuditSink


def get_db() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink(engine)


def pagination_params(page: int = 1, limit: int | None = None) -> tuple[int, int]:
    settings = get_settings()
    if limit is None or limit < 1:
        limit = settings.default_page_size
    if limit > settings.max_page_size:
        limit = settings.max_page_size
    return max(page, 1), limit
