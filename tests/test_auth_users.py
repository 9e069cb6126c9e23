from fastapi.testclient import TestClient
from sqlmodel import Session, select

from stockroom.auth import SESSION_COOKIE
from stockroom.models.base import AuditLog, User

from factories import PASSWORD, login


def test_login_returns_the_principal(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"email": "Admin@Example.com ", "password": PASSWORD})

    assert response.status_code == 200, response.text
    user = response.json()["user"]
    assert user["email"] == "admin@example.com"
    assert user["role"]["name"] == "Admin"
    assert user["permissions"] == ["*"]
    assert SESSION_COOKIE in response.cookies


def test_login_rejects_bad_credentials(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}
    assert client.post("/api/auth/login", json={"email": "", "password": ""}).status_code == 400


def test_current_user_and_logout(client: TestClient) -> None:
    assert client.get("/api/user/current").status_code == 401

    login(client, "manager@example.com")
    current = client.get("/api/user/current")
    assert current.status_code == 200
    assert current.json()["user"]["role"]["name"] == "Manager"

    assert client.post("/api/auth/logout").json()["ok"] is True
    assert client.get("/api/user/current").status_code == 401


def test_forged_cookie_is_ignored(client: TestClient, seed) -> None:
    client.cookies.set(SESSION_COOKIE, f"{seed['users']['Admin']}:9999999999.forged")

    assert client.get("/api/user/current").status_code == 401


def test_change_password(client: TestClient, session: Session) -> None:
    login(client, "viewer@example.com")

    wrong = client.post(
        "/api/auth/change-password", json={"currentPassword": "not-it-at-all", "newPassword": "brand-new-pass"}
    )
    assert wrong.status_code == 400
    assert wrong.json() == {"error": "Current password is incorrect"}

    short = client.post("/api/auth/change-password", json={"currentPassword": PASSWORD, "newPassword": "short"})
    assert short.status_code == 400

    changed = client.post(
        "/api/auth/change-password", json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"}
    )
    assert changed.status_code == 200
    assert changed.json()["message"] == "Password changed successfully"

    client.post("/api/auth/logout")
    login(client, "viewer@example.com", "brand-new-pass")
    assert session.exec(select(AuditLog).where(AuditLog.action == "PASSWORD_CHANGED")).one()


def test_list_users_and_roles(admin_client: TestClient) -> None:
    response = admin_client.get("/api/users", params={"limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body["users"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["hasNext"] is True

    managers = admin_client.get("/api/users", params={"role": "Manager"}).json()["users"]
    assert [user["email"] for user in managers] == ["manager@example.com"]

    roles = admin_client.get("/api/roles").json()
    assert [role["name"] for role in roles] == ["Admin", "Manager", "Viewer"]


def test_create_update_and_delete_user(admin_client: TestClient, session: Session, seed) -> None:
    created = admin_client.post(
        "/api/users",
        json={"name": "Clerk", "email": "Clerk@Stockroom.io", "password": "clerk-pass-1", "roleId": seed["roles"]["Viewer"]},
    )
    assert created.status_code == 201, created.text
    user = created.json()
    assert user["email"] == "clerk@stockroom.io"
    assert user["role"]["name"] == "Viewer"

    duplicate = admin_client.post(
        "/api/users",
        json={"name": "Clerk", "email": "clerk@stockroom.io", "password": "clerk-pass-1", "roleId": seed["roles"]["Viewer"]},
    )
    assert duplicate.json() == {"error": "Email already exists"}

    invalid_role = admin_client.post(
        "/api/users", json={"name": "X", "email": "x@stockroom.io", "password": "clerk-pass-1", "roleId": 999}
    )
    assert invalid_role.json() == {"error": "Invalid role"}

    updated = admin_client.put(
        f"/api/users/{user['id']}", json={"name": "Senior Clerk", "roleId": seed["roles"]["Manager"]}
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["name"] == "Senior Clerk"
    assert updated.json()["role"]["name"] == "Manager"

    deleted = admin_client.delete(f"/api/users/{user['id']}")
    assert deleted.status_code == 200
    assert admin_client.get(f"/api/users/{user['id']}").status_code == 404

    stored = session.get(User, user["id"])
    assert stored.deleted_at is not None
    assert stored.is_active is False
    actions = [row.action for row in session.exec(select(AuditLog).where(AuditLog.entity == "user")).all()]
    assert actions == ["USER_CREATED", "USER_UPDATED", "USER_DELETED"]


def test_deleted_user_cannot_sign_in(admin_client: TestClient, seed) -> None:
    admin_client.delete(f"/api/users/{seed['users']['Viewer']}")
    admin_client.post("/api/auth/logout")

    response = admin_client.post("/api/auth/login", json={"email": "viewer@example.com", "password": PASSWORD})

    assert response.status_code == 401


def test_cannot_delete_own_account(admin_client: TestClient, seed) -> None:
    response = admin_client.delete(f"/api/users/{seed['users']['Admin']}")

    assert response.status_code == 400
    assert response.json() == {"error": "Cannot delete your own account"}


def test_manager_cannot_manage_users(client: TestClient) -> None:
    login(client, "manager@example.com")

    response = client.get("/api/users")

    assert response.status_code == 403
    assert response.json()["userRole"] == "Manager"
