"""Transaction endpoints with the service layer faked out."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from services.transaction_service import TransactionService, format_transaction


@pytest.fixture()
def recorded(monkeypatch):
    calls = []

    def fake_record(db, account_id, added_by, tx_type, amount, **kwargs):
        calls.append({"account_id": account_id, "added_by": added_by, "type": tx_type, "amount": amount, **kwargs})
        return 321

    monkeypatch.setattr(TransactionService, "record_transaction", staticmethod(fake_record))
    return calls


def test_requires_login(client):
    resp = client.post("/api/create-transaction", json={"type": "expense", "amount": 10})
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}


def test_create_transaction(client, auth_headers, account_ctx, recorded):
    resp = client.post(
        "/api/create-transaction",
        json={"type": "expense", "amount": "1499.5", "category": "Groceries", "description": "Atta"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "transactionId": 321}
    call = recorded[0]
    assert call["amount"] == 1500
    assert call["account_id"] == 10
    assert call["added_by"] == 1
    assert call["source"] == "manual"
    assert call["date"] is None


@pytest.mark.parametrize("body", [{}, {"type": "expense"}, {"amount": 100}])
def test_create_transaction_requires_type_and_amount(client, auth_headers, account_ctx, body):
    resp = client.post("/api/transactions", json=body, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Type and amount are required"


def test_viewer_cannot_create(client, auth_headers, viewer_ctx, recorded):
    resp = client.post("/api/transactions", json={"type": "income", "amount": 5}, headers=auth_headers)
    assert resp.status_code == 403
    assert recorded == []


def test_insert_failure_is_500_with_details(client, auth_headers, account_ctx, fake_db):
    fake_db.execute.side_effect = RuntimeError("connection reset")
    resp = client.post("/api/transactions", json={"type": "income", "amount": 5}, headers=auth_headers)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to create transaction", "details": "connection reset"}
    fake_db.rollback.assert_called()


def test_list_transactions_caps_limit(client, auth_headers, account_ctx, monkeypatch):
    seen = {}

    def fake_fetch(db, account_id, **kwargs):
        seen.update(kwargs)
        return []

    monkeypatch.setattr(TransactionService, "fetch", staticmethod(fake_fetch))
    resp = client.get("/api/transactions?limit=9999&type=expense&category=food", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json() == {"transactions": [], "count": 0}
    assert seen["limit"] == 200
    assert seen["tx_type"] == "expense"
    assert seen["category"] == "food"


def test_update_and_delete(client, auth_headers, account_ctx, monkeypatch):
    updates, deletes = [], []
    monkeypatch.setattr(
        TransactionService,
        "update_transaction",
        staticmethod(lambda db, account_id, tx_id, fields: updates.append((account_id, tx_id, fields))),
    )
    monkeypatch.setattr(
        TransactionService,
        "delete_transaction",
        staticmethod(lambda db, account_id, tx_id: deletes.append((account_id, tx_id))),
    )

    resp = client.put("/api/transactions/5", json={"amount": 800, "description": "Fixed"}, headers=auth_headers)
    assert resp.status_code == 200
    assert updates == [(10, 5, {"amount": 800.0, "description": "Fixed"})]

    resp = client.delete("/api/transactions/5", headers=auth_headers)
    assert resp.status_code == 200
    assert deletes == [(10, 5)]


def test_delete_missing_transaction_is_404(client, auth_headers, account_ctx, fake_db):
    fake_db.execute.return_value.fetchone.return_value = None
    resp = client.delete("/api/transactions/77", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Transaction not found"


def test_viewer_cannot_delete(client, auth_headers, viewer_ctx):
    resp = client.delete("/api/transactions/5", headers=auth_headers)
    assert resp.status_code == 403


def test_resolve_category_matches_either_direction(fake_db):
    fake_db.execute.return_value.fetchall.return_value = [
        {"id": 1, "name_en": "Groceries"},
        {"id": 2, "name_en": "Food & Dining"},
        {"id": 9, "name_en": "Other"},
    ]
    assert TransactionService.resolve_category_id(fake_db, 10, "grocer") == 1
    assert TransactionService.resolve_category_id(fake_db, 10, "food & dining out") == 2
    assert TransactionService.resolve_category_id(fake_db, 10, "Spaceships") == 9
    assert TransactionService.resolve_category_id(fake_db, 10, None) == 9


def test_format_transaction_defaults():
    row = {
        "id": 1,
        "type": "expense",
        "amount": Decimal("250.00"),
        "transaction_date": date(2025, 3, 4),
        "created_at": datetime(2025, 3, 4, 10, 0, tzinfo=timezone.utc),
        "added_by": 3,
        "added_by_name": None,
        "added_by_email": "sara@example.com",
    }
    tx = format_transaction(row)
    assert tx["amount"] == 250.0
    assert tx["category"] == "Other"
    assert tx["categoryUr"] == "دیگر"
    assert tx["icon"] == "circle-dot"
    assert tx["color"] == "#94A3B8"
    assert tx["source"] == "manual"
    assert tx["date"] == "2025-03-04"
    assert tx["addedBy"] == "sara@example.com"
