from contextlib import contextmanager
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from stockroom.core.config import get_settings

settings = get_settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, echo=settings.echo_sql, connect_args=_connect_args)


def init_db() -> None:
    from stockroom.models import base  # noqa: F401 ensures models are imported

    SQLModel.metadata.create_all(bind=engine)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
