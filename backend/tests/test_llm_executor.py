"""Advisor tool handlers against fake rows."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from llm import executor
from services.transaction_service import TransactionService

MEMBERS = [
    {"id": 1, "profile_id": 1, "role": "owner", "accepted": True, "full_name": "Ali Khan", "email": "ali@example.com"},
    {"id": 2, "profile_id": 2, "role": "member", "accepted": True, "full_name": "Sara", "email": "sara@example.com"},
    {"id": 3, "profile_id": None, "role": "viewer", "accepted": False, "invited_email": "dad@example.com"},
]

ROWS = [
    {"type": "expense", "amount": Decimal("1200"), "category_name": "Groceries", "description_en": "Weekly",
     "transaction_date": date(2025, 3, 3), "added_by": 1, "source": "manual"},
    {"type": "expense", "amount": Decimal("300"), "category_name": "Transport", "description_en": None,
     "transaction_date": date(2025, 3, 2), "added_by": 2, "source": "voice"},
    {"type": "income", "amount": Decimal("50000"), "category_name": "Salary", "description_en": "March",
     "transaction_date": date(2025, 3, 1), "added_by": 1, "source": "manual"},
]


@pytest.fixture()
def fakes(monkeypatch):
    fetched = []

    def fake_fetch(db, account_id, **kwargs):
        fetched.append(kwargs)
        rows = ROWS
        if kwargs.get("tx_type"):
            rows = [r for r in rows if r["type"] == kwargs["tx_type"]]
        return rows[: kwargs["limit"]] if kwargs.get("limit") else rows

    monkeypatch.setattr(executor, "fetch_members", lambda db, account_id: MEMBERS)
    monkeypatch.setattr(TransactionService, "fetch", staticmethod(fake_fetch))
    monkeypatch.setattr(
        executor,
        "get_balance",
        lambda db, account_id: {"income": 90000.0, "expenses": 40000.0, "balance": 50000.0, "count": 9},
    )
    return fetched


def test_unknown_tool(ctx_factory):
    assert executor.execute_action(MagicMock(), ctx_factory(), "delete_everything", {}) == {
        "error": "Unknown tool"
    }


def test_create_transaction_records_auto_source(monkeypatch, ctx_factory):
    recorded = {}

    def fake_record(db, account_id, added_by, tx_type, amount, **kwargs):
        recorded.update(account_id=account_id, added_by=added_by, type=tx_type, amount=amount, **kwargs)
        return 99

    monkeypatch.setattr(TransactionService, "record_transaction", staticmethod(fake_record))
    result = executor.execute_action(
        MagicMock(),
        ctx_factory(),
        "create_transaction",
        {"type": "expense", "amount": 750, "category": "Food", "description": "Biryani"},
    )
    assert result["success"] is True
    assert result["message"] == "Transaction created: expense of PKR 750 for Food"
    assert recorded["source"] == "auto"
    assert recorded["account_id"] == 10
    assert recorded["added_by"] == 1


def test_create_transaction_blocked_for_viewers(ctx_factory):
    result = executor.execute_action(
        MagicMock(), ctx_factory(role="viewer"), "create_transaction", {"type": "expense", "amount": 5}
    )
    assert result == {"error": "Viewers cannot add transactions"}


def test_create_transaction_validation_error_is_returned(ctx_factory):
    result = executor.execute_action(
        MagicMock(), ctx_factory(), "create_transaction", {"type": "expense", "amount": -5}
    )
    assert "error" in result
    assert "greater than 0" in result["error"]


def test_recent_transactions_filters(fakes, ctx_factory):
    result = executor.execute_action(
        MagicMock(), ctx_factory(), "get_recent_transactions", {"limit": 500, "category": "groc"}
    )
    assert fakes[-1]["limit"] == 50
    assert result["count"] == 1
    tx = result["transactions"][0]
    assert tx == {
        "type": "expense",
        "amount": 1200.0,
        "category": "Groceries",
        "description": "Weekly",
        "date": "2025-03-03",
        "addedBy": "Ali Khan",
        "source": "manual",
    }


def test_spending_summary(fakes, ctx_factory):
    result = executor.execute_action(MagicMock(), ctx_factory(), "get_spending_summary", {})
    summary = result["summary"]
    assert summary["period_days"] == 30
    assert summary["total_expense"] == 1500.0
    assert summary["total_income"] == 50000.0
    assert summary["net_savings"] == 48500.0
    assert summary["expense_by_category"] == {"Groceries": 1200.0, "Transport": 300.0}
    assert "Pending" not in " ".join(summary["family_members"])
    assert "dad@example.com (viewer)" in summary["family_members"]


def test_financial_overview(fakes, ctx_factory):
    result = executor.execute_action(MagicMock(), ctx_factory(), "get_financial_overview", {"days": 7})
    overview = result["overview"]
    assert overview["period_days"] == 7
    assert overview["all_time_balance"] == 50000.0
    assert overview["savings_rate"] == "97.0%"
    assert overview["top_expense_categories"][0] == {"category": "Groceries", "amount": 1200.0}
    assert len(overview["recent_transactions"]) == 3


def test_member_spending(fakes, ctx_factory):
    result = executor.execute_action(MagicMock(), ctx_factory(), "get_member_spending", {})
    by_name = {m["name"]: m for m in result["members"]}
    assert by_name["Ali Khan"]["total_expense"] == 1200.0
    assert by_name["Ali Khan"]["total_income"] == 50000.0
    assert by_name["Sara"]["total_expense"] == 300.0
    assert by_name["dad@example.com"]["transaction_count"] == 0
    assert result["highest_spender"] == "Ali Khan"
    assert result["highest_earner"] == "Ali Khan"


def test_handler_crash_is_reported_to_the_model(monkeypatch, ctx_factory):
    def boom(db, account_id):
        raise RuntimeError("db down")

    monkeypatch.setattr(executor, "fetch_members", boom)
    db = MagicMock()
    result = executor.execute_action(db, ctx_factory(), "get_spending_summary", {})
    assert result == {"error": "Tool get_spending_summary failed: db down"}
    db.rollback.assert_called_once()
