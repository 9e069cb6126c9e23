from fastapi.testclient import TestClient
from sqlmodel import Session

from factories import PASSWORD, make_item


def test_root_redirects_to_login(client: TestClient) -> None:
    response = client.get("/", follow_redirects=False)

    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/web/login"


def test_login_page_renders(client: TestClient) -> None:
    response = client.get("/web/login")

    assert response.status_code == 200
    assert "Sign in" in response.text


def test_protected_page_redirects_anonymous_users(client: TestClient) -> None:
    response = client.get("/web/dashboard", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/web/login?error=login_required"


def test_bad_login_rerenders_the_form(client: TestClient) -> None:
    response = client.post("/web/login", data={"email": "admin@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert "Invalid email or password." in response.text


def test_login_then_dashboard(client: TestClient, session: Session) -> None:
    make_item(session, "Widget")

    response = client.post(
        "/web/login", data={"email": "manager@example.com", "password": PASSWORD}, follow_redirects=False
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/web/dashboard"

    dashboard = client.get("/web/dashboard")
    assert dashboard.status_code == 200
    assert "Manager User" in dashboard.text

    report = client.get("/web/reports/stock-on-hand", params={"stock_status": "out-of-stock"})
    assert report.status_code == 200
    assert "Widget" in report.text

    logged_out = client.get("/web/logout", follow_redirects=False)
    assert logged_out.headers["location"] == "/web/login"
    assert client.get("/web/dashboard", follow_redirects=False).status_code == 303


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
