from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from stockroom.core.config import get_settings
from stockroom.models.base import COMPANY_TYPE_CUSTOMER, StockMovement
from stockroom.schemas.posting import IssueRequest, ReceiptRequest
from stockroom.services import reports
from stockroom.services.audit import NullAuditSink
from stockroom.services.posting import PostingContext, post_issue, post_receipt

from factories import login, make_company, make_item


@pytest.fixture(name="context")
def context_fixture(seed) -> PostingContext:
    return PostingContext(actor_id=seed["users"]["Admin"])


def _receive(session, context, item, qty, unit_cost) -> int:
    request = ReceiptRequest(lines=[{"itemId": item.id, "qty": qty, "unitCost": unit_cost}])
    return post_receipt(session, context, request, NullAuditSink()).header_id


def _issue(session, context, item, qty, customer_name=None) -> int:
    request = IssueRequest(customer_name=customer_name, lines=[{"itemId": item.id, "qty": qty}])
    return post_issue(session, context, request, NullAuditSink()).header_id


@pytest.fixture(name="stocked")
def stocked_fixture(session: Session, context) -> dict:
    """Four items: one below minimum, one critical, one out of stock, one healthy."""

    low = make_item(session, "Low", sku="LOW", min_stock="5", brand="Acme", category="Parts")
    critical = make_item(session, "Critical", sku="CRIT", min_stock="10", category="Parts")
    empty = make_item(session, "Empty", sku="EMPTY")
    healthy = make_item(session, "Healthy", sku="OK", min_stock="1", brand="Acme")
    _receive(session, context, low, 2, 3)
    _receive(session, context, critical, 1, 4)
    _receive(session, context, healthy, 10, 2)
    return {"low": low, "critical": critical, "empty": empty, "healthy": healthy}


def test_stock_status_rules() -> None:
    assert reports.stock_status(0, 5) == reports.STATUS_OUT_OF_STOCK
    assert reports.stock_status(2, 5) == reports.STATUS_BELOW_MIN
    assert reports.stock_status(2, 0) == reports.STATUS_IN_STOCK
    assert reports.stock_status(5, 5) == reports.STATUS_IN_STOCK


@pytest.mark.parametrize(
    "percentage, level",
    [(0, "critical"), (25, "critical"), (25.1, "high"), (50, "high"), (75, "medium"), (99.9, "low")],
)
def test_severity_levels(percentage, level) -> None:
    assert reports.severity_level(percentage) == level


def test_stock_on_hand_service(session: Session, stocked) -> None:
    rows = {row.sku: row for row in reports.stock_on_hand(session)}

    assert rows["LOW"].total_stock == 2
    assert rows["LOW"].stock_status == reports.STATUS_BELOW_MIN
    assert rows["EMPTY"].stock_status == reports.STATUS_OUT_OF_STOCK
    assert rows["OK"].stock_status == reports.STATUS_IN_STOCK
    assert rows["OK"].stock_by_location[0].location_name == "Main Location"

    below = [row.sku for row in reports.stock_on_hand(session, status=reports.STATUS_BELOW_MIN)]
    assert below == ["CRIT", "LOW"]
    by_brand = [row.sku for row in reports.stock_on_hand(session, brand="Acme")]
    assert by_brand == ["OK", "LOW"]


def test_low_stock_service(session: Session, stocked) -> None:
    rows = reports.low_stock(session)

    assert [row.sku for row in rows] == ["CRIT", "LOW"]
    critical, low = rows
    assert critical.percentage == 10.0
    assert critical.severity_level == "critical"
    assert low.percentage == 40.0
    assert low.severity_level == "high"
    assert low.reorder_value == 9.0

    assert [row.sku for row in reports.low_stock(session, severity="high")] == ["LOW"]


def test_stock_movements_destinations(session: Session, context, stocked) -> None:
    make_company(session, "Branch North", COMPANY_TYPE_CUSTOMER)
    _issue(session, context, stocked["healthy"], 2, customer_name="Branch North")
    _issue(session, context, stocked["healthy"], 1)

    rows = reports.stock_movements(session, item="healthy")

    assert [row.type for row in rows] == ["ISSUE", "ISSUE", "GRN"]
    assert rows[0].destination == get_settings().in_house_destination
    assert rows[1].destination == "Branch North"
    assert rows[1].qty_out == 2
    assert rows[1].total_value == 4.0
    assert rows[2].destination == "Main Location"
    assert rows[2].qty_in == 10
    assert rows[2].qty_out is None

    grn_only = reports.stock_movements(session, movement_type="GRN")
    assert {row.item_sku for row in grn_only} == {"LOW", "CRIT", "OK"}
    tomorrow = datetime.utcnow().date() + timedelta(days=1)
    assert reports.stock_movements(session, date_from=tomorrow) == []


def test_recent_movements_labels(session: Session, context, stocked) -> None:
    make_company(session, "Branch North", COMPANY_TYPE_CUSTOMER)
    _issue(session, context, stocked["healthy"], 2, customer_name="Branch North")
    _issue(session, context, stocked["healthy"], 1)

    rows = reports.recent_movements(session, limit=3)

    assert [row.type for row in rows] == ["Issued", "Transferred", "Received"]


def test_dashboard_stats(session: Session, context, stocked) -> None:
    _issue(session, context, stocked["healthy"], 4)

    stats = reports.dashboard_stats(session)

    # 2 * 3 + 1 * 4 + 6 * 2
    assert stats.stock_value == 22.0
    assert stats.items_below_min == 2
    assert stats.receipts == 3
    assert stats.issues == 1


def test_stock_trend_rebuilds_past_values(session: Session, context) -> None:
    item = make_item(session, "Widget")
    receipt = _receive(session, context, item, 10, 2)
    _issue(session, context, item, 4)
    today = date(2024, 5, 10)
    for movement in session.exec(select(StockMovement)).all():
        day = today - timedelta(days=2) if movement.ref_header_id == receipt else today
        movement.created_at = datetime.combine(day, datetime.min.time()).replace(hour=9)
        session.add(movement)
    session.commit()

    trend = reports.stock_trend(session, today=today)

    assert [entry.day for entry in trend] == [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    by_day = {entry.day: entry for entry in trend}
    assert by_day[today].stock_value == 12.0
    assert by_day[today].qty_out == 4
    assert by_day[today].internal_usage == 8.0
    assert by_day[today - timedelta(days=1)].stock_value == 20.0
    receipt_day = by_day[today - timedelta(days=2)]
    assert receipt_day.qty_in == 10
    assert receipt_day.in_value == 20.0
    assert receipt_day.stock_value == 0.0
    assert trend[0].stock_value == 0.0


def test_report_endpoints(client: TestClient, session: Session, stocked) -> None:
    login(client, "viewer@example.com")

    response = client.get("/api/reports/stock-on-hand", params={"limit": 2})
    assert response.status_code == 200, response.text
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 4,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }
    assert {option["value"] for option in body["filterOptions"]["statuses"]} >= {"in-stock", "below-min"}
    assert [option["value"] for option in body["filterOptions"]["brands"]] == ["Acme"]

    low = client.get("/api/reports/low-stock").json()
    assert [row["sku"] for row in low["data"]] == ["CRIT", "LOW"]
    assert low["data"][0]["severityLevel"] == "critical"

    movements = client.get("/api/reports/stock-movements", params={"type": "GRN"}).json()
    assert movements["pagination"]["total"] == 3
    assert movements["filterOptions"]["types"] == [{"value": "GRN", "label": "Received"}]


def test_dashboard_endpoints(client: TestClient, stocked) -> None:
    login(client, "viewer@example.com")

    stats = client.get("/api/stats").json()
    assert stats["stockValue"] == 30.0
    assert stats["receipts"] == 3

    trend = client.get("/api/stats/trend").json()
    assert len(trend) == 7
    assert set(trend[-1]) >= {"date", "in", "out", "net", "stockValue", "branchTransfers", "internalUsage"}
    assert trend[-1]["in"] == 13

    movements = client.get("/api/movements", params={"limit": 2}).json()
    assert len(movements) == 2
    assert movements[0]["type"] == "Received"


def test_reports_require_a_session(client: TestClient) -> None:
    assert client.get("/api/reports/low-stock").status_code == 401
    assert client.get("/api/stats").status_code == 401
