"""Twilio calls: TwiML, placement, scheduling and status callbacks."""

from types import SimpleNamespace

import pytest

import config
from services import call_service


@pytest.fixture()
def placed(monkeypatch):
    """Fake Twilio placement that records every call it is asked to make."""
    calls = []

    def fake_place(client, to, message):
        if to.endswith("0000000"):
            raise RuntimeError("Twilio rejected the number")
        calls.append({"to": to, "message": message})
        return SimpleNamespace(sid=f"CA{len(calls):03d}")

    monkeypatch.setattr(call_service, "get_twilio_client", lambda: object())
    monkeypatch.setattr(call_service, "generate_call_script", lambda db, account_id, name: f"Salaam {name}")
    monkeypatch.setattr(call_service, "place_call", fake_place)
    return calls


def test_twiml_repeats_message_then_says_goodbye():
    xml = call_service.build_twiml("Balance is 500")
    assert xml.count("Balance is 500") == 2
    assert xml.count("<Say") == 3
    assert 'voice="Polly.Aditi"' in xml
    assert 'language="ur-PK"' in xml
    assert call_service.CLOSING_MESSAGE in xml


def test_twiml_default_message():
    assert call_service.DEFAULT_WEBHOOK_MESSAGE in call_service.build_twiml(None)


def test_twilio_webhook_route_returns_xml(client):
    resp = client.get("/api/twilio-webhook?message=Balance%20is%20500")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("text/xml")
    assert resp.get_data(as_text=True).count("Balance is 500") == 2


def test_twilio_webhook_falls_back_to_error_twiml(client, monkeypatch):
    def boom(message):
        raise RuntimeError("bad template")

    monkeypatch.setattr(call_service, "build_twiml", boom)
    resp = client.post("/api/twilio-webhook")
    assert resp.status_code == 200
    assert call_service.ERROR_MESSAGE in resp.get_data(as_text=True)


def test_make_call_requires_phone(client, auth_headers, account_ctx):
    resp = client.post("/api/make-call", json={}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Phone number is required"


def test_make_call_rejects_bad_phone(client, auth_headers, account_ctx):
    resp = client.post("/api/make-call", json={"phoneNumber": "12-34"}, headers=auth_headers)
    assert resp.status_code == 400
    assert "+92XXXXXXXXXX" in resp.get_json()["error"]


def test_make_call_schedules_in_pkt(client, auth_headers, account_ctx, fake_db):
    fake_db.execute.return_value.fetchone.return_value = {"id": 7}
    resp = client.post(
        "/api/make-call",
        json={"phoneNumber": "+92 300 1234567", "scheduledAt": "2025-06-01T15:30:00"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json() == {
        "success": True,
        "scheduled": True,
        "callId": 7,
        "message": "Call scheduled for 01/06/2025, 03:30:00 PM",
    }
    params = fake_db.execute.call_args[0][1]
    assert params[2] == "+923001234567"
    assert params[3] == "Ali Khan"
    assert params[5] == "pending"


def test_make_call_scheduled_utc_is_shown_in_pkt(client, auth_headers, account_ctx, fake_db):
    fake_db.execute.return_value.fetchone.return_value = {"id": 8}
    resp = client.post(
        "/api/make-call",
        json={"phoneNumber": "923001234567", "scheduledAt": "2025-06-01T10:30:00Z"},
        headers=auth_headers,
    )
    assert resp.get_json()["message"] == "Call scheduled for 01/06/2025, 03:30:00 PM"


def test_make_call_rejects_bad_schedule(client, auth_headers, account_ctx):
    resp = client.post(
        "/api/make-call",
        json={"phoneNumber": "+923001234567", "scheduledAt": "tomorrow-ish"},
        headers=auth_headers,
    )
    assert resp.status_code == 400


def test_make_call_now(client, auth_headers, account_ctx, fake_db, placed):
    fake_db.execute.return_value.fetchone.return_value = {"id": 9}
    resp = client.post(
        "/api/make-call",
        json={"phoneNumber": "+923001234567", "memberName": "Sara"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json() == {
        "success": True,
        "scheduled": False,
        "callSid": "CA001",
        "message": "Call initiated to Sara (+923001234567)",
        "urduMessage": "Salaam Sara",
    }
    assert placed == [{"to": "+923001234567", "message": "Salaam Sara"}]
    fake_db.commit.assert_called()


def test_make_call_without_twilio_credentials(client, auth_headers, account_ctx, monkeypatch):
    monkeypatch.setattr(config, "TWILIO_ACCOUNT_SID", None)
    resp = client.post("/api/make-call", json={"phoneNumber": "+923001234567"}, headers=auth_headers)
    assert resp.status_code == 500
    assert resp.get_json()["error"].startswith("Twilio credentials not configured")


def test_place_call_points_twilio_at_webhook(monkeypatch):
    monkeypatch.setattr(config, "TWILIO_PHONE_NUMBER", "+15550001111")
    monkeypatch.setattr(config, "APP_URL", "https://hisaab.example.com")
    created = {}
    fake_client = SimpleNamespace(
        calls=SimpleNamespace(create=lambda **kwargs: created.update(kwargs) or SimpleNamespace(sid="CA1"))
    )

    call_service.place_call(fake_client, "+923001234567", "a b&c")

    assert created["from_"] == "+15550001111"
    assert created["url"] == "https://hisaab.example.com/api/twilio-webhook?message=a%20b%26c"
    assert created["status_callback"] == "https://hisaab.example.com/api/twilio-status"
    assert created["status_callback_event"] == ["completed", "busy", "no-answer", "failed"]
    assert created["status_callback_method"] == "POST"


def test_call_script_falls_back_when_model_fails(monkeypatch):
    monkeypatch.setattr(
        call_service,
        "get_month_summary",
        lambda db, account_id: {"total_income": 1000.4, "total_expense": 250, "balance": 750.4},
    )

    def fail(prompt, **kwargs):
        raise RuntimeError("model down")

    monkeypatch.setattr(call_service, "complete_text", fail)
    script = call_service.generate_call_script(None, 10, "Ali")
    assert "Ali" in script
    assert "1000" in script
    assert "750" in script


def test_list_calls(client, auth_headers, account_ctx, fake_db):
    fake_db.execute.return_value.fetchall.return_value = [{"id": 1, "status": "pending"}]
    resp = client.get("/api/make-call", headers=auth_headers)
    assert resp.get_json() == {"calls": [{"id": 1, "status": "pending"}]}
    assert fake_db.execute.call_args[0][1] == (10,)


def test_quick_call_needs_a_phone(client, auth_headers, account_ctx, monkeypatch):
    monkeypatch.setattr(
        call_service, "fetch_members", lambda db, account_id: [{"full_name": "Sara", "phone_number": None}]
    )
    resp = client.post("/api/quick-call", headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("No family members have phone numbers")


def test_quick_call_reports_each_member(client, auth_headers, account_ctx, fake_db, placed, monkeypatch):
    fake_db.execute.return_value.fetchone.return_value = {"id": 1}
    monkeypatch.setattr(
        call_service,
        "fetch_members",
        lambda db, account_id: [
            {"full_name": "Ali Khan", "phone_number": "+923001234567"},
            {"full_name": None, "profile_phone": "+923000000000"},
            {"full_name": "No Phone", "phone_number": ""},
        ],
    )
    resp = client.post("/api/quick-call", headers=auth_headers)
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["message"] == "Called 1 of 2 members"
    assert data["results"][0] == {"member": "Ali Khan", "phone": "+923001234567", "status": "called", "sid": "CA001"}
    assert data["results"][1]["member"] == "Family Member"
    assert data["results"][1]["status"] == "failed"
    assert data["results"][1]["error"] == "Twilio rejected the number"
    fake_db.rollback.assert_called()


def test_cron_with_nothing_due(client, fake_db):
    fake_db.execute.return_value.fetchall.return_value = []
    resp = client.get("/api/cron/process-calls")
    assert resp.status_code == 200
    assert resp.get_json() == {"processed": 0, "message": "No calls due"}


def test_cron_places_due_calls(client, fake_db, placed):
    fake_db.execute.return_value.fetchall.return_value = [
        {"id": 1, "account_id": 10, "member_name": "Ali", "phone_number": "+923001234567"},
        {"id": 2, "account_id": 10, "member_name": None, "phone_number": "+923000000000"},
    ]
    resp = client.get("/api/cron/process-calls")
    data = resp.get_json()
    assert data["processed"] == 1
    assert data["results"][0] == {"id": 1, "status": "completed", "sid": "CA001"}
    assert data["results"][1]["status"] == "failed"
    fake_db.execute.assert_any_call("UPDATE scheduled_calls SET status = 'failed' WHERE id = %s", (2,))


def test_cron_requires_secret_in_production(client, fake_db, monkeypatch):
    fake_db.execute.return_value.fetchall.return_value = []
    monkeypatch.setattr(config, "APP_ENV", "production")
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")

    assert client.get("/api/cron/process-calls").status_code == 401
    assert client.get("/api/cron/process-calls", headers={"Authorization": "Bearer nope"}).status_code == 401
    resp = client.get("/api/cron/process-calls", headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200


def test_status_callback_marks_failed_calls(client, fake_db):
    resp = client.post("/api/twilio-status", data={"CallSid": "CA42", "CallStatus": "no-answer", "To": "+92300"})
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "OK"
    fake_db.execute.assert_called_once_with(
        "UPDATE scheduled_calls SET status = 'failed' WHERE twilio_sid = %s", ("CA42",)
    )


def test_status_callback_ignores_completed(client, fake_db):
    resp = client.post("/api/twilio-status", data={"CallSid": "CA42", "CallStatus": "completed"})
    assert resp.status_code == 200
    fake_db.execute.assert_not_called()


def test_status_callback_survives_db_errors(client, fake_db):
    fake_db.execute.side_effect = RuntimeError("db gone")
    resp = client.post("/api/twilio-status", data={"CallSid": "CA42", "CallStatus": "failed"})
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "OK"
