from fastapi.testclient import TestClient
from sqlmodel import Session, select

from stockroom.api.deps import get_audit_sink
from stockroom.models.base import AuditLog, StockMovement
from stockroom.services import ledger

from factories import login


def _create_item(client: TestClient, name: str = "Widget") -> int:
    response = client.post("/api/items", json={"name": name, "unit": "pcs"})
    assert response.status_code == 201, response.text
    return response.json()["id"]


def _on_hand(client: TestClient, item_id: int) -> float:
    response = client.get(f"/api/items/{item_id}")
    assert response.status_code == 200, response.text
    return response.json()["onHand"]


def test_receive_and_issue_flow(admin_client: TestClient, seed) -> None:
    item_id = _create_item(admin_client)
    location_id = seed["location_id"]

    # receive 10 at 5.00
    response = admin_client.post(
        "/api/grn",
        json={"locationId": location_id, "lines": [{"itemId": item_id, "qty": 10, "unitCost": 5.0}]},
    )
    assert response.status_code == 200, response.text
    receipt = response.json()
    assert receipt["ok"] is True
    assert receipt["docNo"].startswith("GRN-")
    assert receipt["lines"][0]["status"] == "posted"

    item = admin_client.get(f"/api/items/{item_id}").json()
    assert item["onHand"] == 10
    assert item["standardCost"] == 5.0

    # issue 4 at standard cost
    response = admin_client.post("/api/issue", json={"locationId": location_id, "lines": [{"itemId": item_id, "qty": 4}]})
    assert response.status_code == 200, response.text
    issue = response.json()
    assert _on_hand(admin_client, item_id) == 6

    response = admin_client.get(f"/api/transactions/{issue['headerId']}")
    assert response.status_code == 200, response.text
    document = response.json()
    assert document["type"] == "ISSUE"
    assert document["lines"][0]["qty"] == 4
    assert document["lines"][0]["unitCost"] == 5.0
    assert document["lines"][0]["itemName"] == "Widget"


def test_issue_beyond_balance_is_rejected(admin_client: TestClient, seed) -> None:
    item_id = _create_item(admin_client)
    admin_client.post(
        "/api/grn",
        json={"locationId": seed["location_id"], "lines": [{"itemId": item_id, "qty": 3, "unitCost": 1}]},
    )

    response = admin_client.post(
        "/api/issue", json={"locationId": seed["location_id"], "lines": [{"itemId": item_id, "qty": 5}]}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Insufficient stock for Widget. On hand: 3"
    assert _on_hand(admin_client, item_id) == 3


def test_posting_requires_lines(admin_client: TestClient) -> None:
    response = admin_client.post("/api/grn", json={"lines": []})

    assert response.status_code == 400
    assert response.json() == {"error": "lines are required"}


def test_malformed_payload_is_a_bad_request(admin_client: TestClient) -> None:
    response = admin_client.post("/api/issue", json={"lines": [{"itemId": 1, "qty": "many"}]})

    assert response.status_code == 400
    assert "error" in response.json()


def test_posting_requires_a_session(client: TestClient) -> None:
    response = client.post("/api/grn", json={"lines": [{"itemId": 1, "qty": 1}]})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_viewer_cannot_post(client: TestClient) -> None:
    login(client, "viewer@example.com")

    response = client.post("/api/issue", json={"lines": [{"itemId": 1, "qty": 1}]})

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "Insufficient permissions"
    assert body["required"] == "transactions:create"


def test_manager_can_post(client: TestClient, seed) -> None:
    login(client, "manager@example.com")
    item_id = _create_item(client, "Cable")

    response = client.post("/api/grn", json={"lines": [{"itemId": item_id, "qty": 2, "unitCost": 1.5}]})

    assert response.status_code == 200, response.text


def test_posting_writes_an_audit_record(admin_client: TestClient, session: Session, seed) -> None:
    item_id = _create_item(admin_client)

    response = admin_client.post(
        "/api/grn",
        json={"lines": [{"itemId": item_id, "qty": 2, "unitCost": 4}]},
        headers={"user-agent": "scanner/1.0", "x-forwarded-for": "192.0.2.7, 10.0.0.1"},
    )
    assert response.status_code == 200, response.text

    record = session.exec(select(AuditLog).where(AuditLog.entity == "GRN")).one()
    assert record.action == "CREATE"
    assert record.entity_id == str(response.json()["headerId"])
    assert record.actor_id == seed["users"]["Admin"]
    assert record.ip == "192.0.2.7"
    assert record.user_agent == "scanner/1.0"


def test_broken_audit_store_does_not_change_the_response(app, admin_client: TestClient, session: Session) -> None:
    class BrokenSink:
        def write(self, entry) -> None:
            raise ConnectionError("audit store offline")

    item_id = _create_item(admin_client)
    app.dependency_overrides[get_audit_sink] = lambda: BrokenSink()

    response = admin_client.post("/api/grn", json={"lines": [{"itemId": item_id, "qty": 1, "unitCost": 1}]})

    assert response.status_code == 200, response.text
    assert response.json()["ok"] is True
    assert session.exec(select(StockMovement).where(StockMovement.item_id == item_id)).one()


def test_unexpected_failure_is_reported_without_details(admin_client: TestClient, session: Session, monkeypatch) -> None:
    item_id = _create_item(admin_client)

    def explode(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(ledger, "record_movement", explode)
    response = admin_client.post("/api/grn", json={"lines": [{"itemId": item_id, "qty": 1, "unitCost": 1}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to post GRN"}
    assert session.exec(select(StockMovement)).all() == []


def test_unknown_transaction(admin_client: TestClient) -> None:
    response = admin_client.get("/api/transactions/999")

    assert response.status_code == 404
    assert response.json() == {"error": "Transaction not found"}
