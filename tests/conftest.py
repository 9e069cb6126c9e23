import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

_TEST_DIR = Path(tempfile.mkdtemp(prefix="stockroom-tests-"))
os.environ.setdefault("STOCKROOM_DATABASE_URL", f"sqlite:///{_TEST_DIR / 'app.db'}")
os.environ.setdefault("STOCKROOM_ENABLE_SEED_DATA", "false")
os.environ.setdefault("STOCKROOM_LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from stockroom import security  # noqa: E402
from stockroom.api.deps import get_audit_sink, get_db  # noqa: E402
from stockroom.core.permissions import ADMIN_ROLE, MANAGER_ROLE, VIEWER_ROLE  # noqa: E402
from stockroom.main import create_application  # noqa: E402
from stockroom.services import bootstrap  # noqa: E402
from stockroom.services.audit import DatabaseAuditSink  # noqa: E402
from stockroom.services.catalog import ensure_default_location  # noqa: E402

from factories import PASSWORD, login  # noqa: E402


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(security, "_ITERATIONS", 1_000)


@pytest.fixture(name="db_engine")
def db_engine_fixture(tmp_path) -> Generator[Any, None, None]:
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(db_engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture(name="seed")
def seed_fixture(session: Session) -> dict[str, Any]:
    """Default roles, a MAIN location and one user per role."""

    roles = bootstrap.seed_roles(session)
    location = ensure_default_location(session)
    users = {}
    for role_name, email in (
        (ADMIN_ROLE, "admin@example.com"),
        (MANAGER_ROLE, "manager@example.com"),
        (VIEWER_ROLE, "viewer@example.com"),
    ):
        users[role_name] = bootstrap.create_user(
            session, name=f"{role_name} User", email=email, password=PASSWORD, role_id=roles[role_name].id
        )
    session.commit()
    return {
        "roles": {name: role.id for name, role in roles.items()},
        "location_id": location.id,
        "users": {name: user.id for name, user in users.items()},
    }


@pytest.fixture(name="app")
def app_fixture(db_engine):  # type: ignore[annotations]
    app = create_application()

    def get_db_override() -> Generator[Session, None, None]:
        with Session(db_engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_audit_sink] = lambda: DatabaseAuditSink(db_engine)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(name="client")
def client_fixture(app, seed) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture(name="admin_client")
def admin_client_fixture(client: TestClient) -> TestClient:
    login(client, "admin@example.com")
    return client

