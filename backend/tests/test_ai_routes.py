"""Voice, bill and advisor endpoints with the model calls faked out."""

import pytest

from core import ExternalServiceError, UnprocessableError
from routes import ai_routes
from services.transaction_service import TransactionService


@pytest.fixture()
def recorded(monkeypatch):
    calls = []

    def fake_record(db, account_id, added_by, tx_type, amount, **kwargs):
        calls.append({"type": tx_type, "amount": amount, **kwargs})
        return 1000 + len(calls)

    monkeypatch.setattr(TransactionService, "record_transaction", staticmethod(fake_record))
    return calls


def test_process_voice_requires_transcript(client, auth_headers):
    resp = client.post("/api/process-voice", json={"language": "ur"}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No transcript provided"


def test_process_voice(client, auth_headers, monkeypatch):
    monkeypatch.setattr(
        ai_routes,
        "extract_voice_transaction",
        lambda transcript, language: {"type": "expense", "amount": "200", "category": "food",
                                      "description": "chai", "confidence": 0.8},
    )
    resp = client.post("/api/process-voice", json={"transcript": "chai 200"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["amount"] == "200"


def test_process_voice_unparseable_is_422(client, auth_headers, monkeypatch):
    def fail(transcript, language):
        raise UnprocessableError("Could not extract structured data", payload={"rawResponse": "hmm"})

    monkeypatch.setattr(ai_routes, "extract_voice_transaction", fail)
    resp = client.post("/api/process-voice", json={"transcript": "???"}, headers=auth_headers)
    assert resp.status_code == 422
    assert resp.get_json() == {"error": "Could not extract structured data", "rawResponse": "hmm"}


def test_process_voice_agentic_autosave(client, auth_headers, account_ctx, recorded, monkeypatch):
    extracted = [
        {"type": "expense", "amount": 500.0, "category": "Food", "description": "Lunch", "confidence": 0.9, "saved": False},
        {"type": "expense", "amount": 80.0, "category": "Other", "description": "?", "confidence": 0.2, "saved": False},
        {"type": "income", "amount": 0.0, "category": "Gift", "description": "", "confidence": 0.9, "saved": False},
    ]
    monkeypatch.setattr(
        ai_routes, "extract_voice_transactions", lambda transcript, language: (extracted, "3 found")
    )
    resp = client.post(
        "/api/process-voice-agentic",
        json={"transcript": "lunch 500 ...", "autoSave": True},
        headers=auth_headers,
    )
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["savedCount"] == 1
    assert data["totalCount"] == 3
    assert data["summary"] == "3 found"
    assert data["saved"] is True
    assert data["amount"] == 500.0
    assert [tx["saved"] for tx in data["transactions"]] == [True, False, False]
    assert recorded[0]["source"] == "voice"


def test_process_voice_agentic_without_autosave(client, auth_headers, recorded, monkeypatch):
    extracted = [{"type": "income", "amount": 100.0, "category": "Salary", "description": "", "confidence": 0.9, "saved": False}]
    monkeypatch.setattr(ai_routes, "extract_voice_transactions", lambda transcript, language: (extracted, "1"))
    resp = client.post("/api/process-voice-agentic", json={"transcript": "salary 100"}, headers=auth_headers)
    assert resp.get_json()["savedCount"] == 0
    assert resp.get_json()["saved"] is False
    assert recorded == []


def test_scan_bill_rejects_bad_format(client, auth_headers):
    resp = client.post("/api/scan-bill", json={"image": "data:image/webp;base64,AAAA"}, headers=auth_headers)
    assert resp.status_code == 400
    assert "Only JPG, PNG, and PDF" in resp.get_json()["error"]


def test_scan_bill_autosave(client, auth_headers, account_ctx, recorded, monkeypatch):
    monkeypatch.setattr(
        ai_routes,
        "scan_bill",
        lambda image: {"is_bill": True, "amount": 1050, "category": "food", "date": "2025-03-01",
                       "description": "Bill from KFC", "merchant": "KFC", "items": [], "confidence": 0.9},
    )
    resp = client.post("/api/scan-bill", json={"image": "AAAA", "autoSave": True}, headers=auth_headers)
    data = resp.get_json()
    assert data["saved"] is True
    assert data["transactionId"] == 1001
    assert recorded[0]["source"] == "bill_scan"
    assert recorded[0]["type"] == "expense"


def test_scan_bill_rejection_is_not_saved(client, auth_headers, account_ctx, recorded, monkeypatch):
    monkeypatch.setattr(
        ai_routes, "scan_bill", lambda image: {"is_bill": False, "amount": 0, "rejection_reason": "Selfie"}
    )
    resp = client.post("/api/scan-bill", json={"image": "AAAA", "autoSave": True}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["is_bill"] is False
    assert recorded == []


def test_advisor_requires_message(client, auth_headers):
    resp = client.post("/api/advisor", json={}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No message provided"


def test_advisor_agentic(client, auth_headers, account_ctx, monkeypatch):
    seen = {}

    def fake_agentic(db, ctx, message, language, history):
        seen.update(ctx=ctx, message=message, language=language, history=history)
        return {"response": "Your balance is PKR 5,000."}

    monkeypatch.setattr(ai_routes, "agentic_advice", fake_agentic)
    resp = client.post(
        "/api/advisor-agentic",
        json={"message": "balance?", "language": "ur", "history": [{"role": "user", "content": "hi"}]},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"response": "Your balance is PKR 5,000."}
    assert seen["ctx"] is account_ctx
    assert seen["language"] == "ur"


def test_advisor_upstream_failure_is_502(client, auth_headers, account_ctx, monkeypatch):
    def fail(*args):
        raise ExternalServiceError("AI", "rate limited")

    monkeypatch.setattr(ai_routes, "simple_advice", fail)
    resp = client.post("/api/advisor", json={"message": "tips?"}, headers=auth_headers)
    assert resp.status_code == 502
    assert resp.get_json() == {"error": "AI service error. Please try again.", "details": "rate limited"}


def test_viewer_cannot_autosave_bill(client, auth_headers, viewer_ctx, recorded, monkeypatch):
    monkeypatch.setattr(
        ai_routes,
        "scan_bill",
        lambda image: {"is_bill": True, "amount": 1050, "category": "food", "date": "2025-03-01",
                       "description": "Bill from KFC", "merchant": "KFC", "items": [], "confidence": 0.9},
    )
    resp = client.post("/api/scan-bill", json={"image": "AAAA", "autoSave": True}, headers=auth_headers)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Viewers cannot add transactions"
    assert recorded == []
