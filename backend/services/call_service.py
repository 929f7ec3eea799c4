"""Outbound Urdu finance-report phone calls through Twilio"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

import config
from core import ConfigurationError, ValidationError, get_logger
from core.dates import PKT, now_pkt
from core.validators import normalize_phone
from financial_context import get_month_summary
from llm import prompt_manager
from llm.client import complete_text
from services.account_service import AccountContext
from services.member_service import fetch_members, member_phone

logger = get_logger(__name__)

SAY_OPTIONS = {"language": "ur-PK", "voice": "Polly.Aditi"}
DEFAULT_WEBHOOK_MESSAGE = "السلام علیکم۔ یہ حساب کتاب سے ایک خودکار کال ہے۔ شکریہ۔"
CLOSING_MESSAGE = "حساب کتاب کا استعمال کرنے کا شکریہ۔ اللہ حافظ۔"
ERROR_MESSAGE = "معذرت، کال میں خرابی ہوئی۔ بعد میں دوبارہ کوشش کریں۔"

STATUS_EVENTS = ["completed", "busy", "no-answer", "failed"]
FAILED_STATUSES = ("busy", "no-answer", "failed", "canceled")
MIN_PHONE_LENGTH = 10
DUE_BATCH_SIZE = 10


def get_twilio_client() -> Client:
    if not (config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_PHONE_NUMBER):
        raise ConfigurationError(
            "Twilio credentials not configured. Add TWILIO_ACCOUNT_SID, "
            "TWILIO_AUTH_TOKEN, and TWILIO_PHONE_NUMBER to environment variables."
        )
    return Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)


def generate_call_script(db, account_id: int, name: str) -> str:
    """Urdu script for the call. Falls back to a fixed template when the model fails."""
    summary = get_month_summary(db, account_id)
    try:
        return complete_text(prompt_manager.call_script_prompt(name, summary), max_tokens=512)
    except Exception as e:
        logger.warning("call_script_fallback", account_id=account_id, error=str(e))
        return prompt_manager.default_call_message(
            name, summary["total_income"], summary["total_expense"], summary["balance"]
        )


def place_call(client: Client, to: str, message: str):
    return client.calls.create(
        to=to,
        from_=config.TWILIO_PHONE_NUMBER,
        url=f"{config.APP_URL}/api/twilio-webhook?message={quote(message, safe='')}",
        status_callback=f"{config.APP_URL}/api/twilio-status",
        status_callback_event=STATUS_EVENTS,
        status_callback_method="POST",
    )


def _insert_call(
    db,
    ctx: AccountContext,
    phone: str,
    name: str,
    scheduled_at,
    status: str,
    twilio_sid: Optional[str] = None,
    message: Optional[str] = None,
) -> int:
    row = db.execute(
        """
        INSERT INTO scheduled_calls
            (account_id, profile_id, phone_number, member_name, scheduled_at, status, twilio_sid, message_text)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (ctx.account_id, ctx.profile_id, phone, name, scheduled_at, status, twilio_sid, message),
    ).fetchone()
    db.commit()
    return row["id"]


def _parse_scheduled_at(value: str) -> datetime:
    try:
        when = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid scheduledAt. Use an ISO 8601 timestamp", field="scheduledAt")
    if when.tzinfo is None:
        when = when.replace(tzinfo=PKT)
    return when


def schedule_call(db, ctx: AccountContext, phone: str, name: str, scheduled_at: str) -> Dict[str, Any]:
    when = _parse_scheduled_at(scheduled_at)
    call_id = _insert_call(db, ctx, phone, name, when, "pending")
    logger.info("call_scheduled", account_id=ctx.account_id, call_id=call_id, scheduled_at=when.isoformat())
    return {
        "success": True,
        "scheduled": True,
        "callId": call_id,
        "message": f"Call scheduled for {when.astimezone(PKT).strftime('%d/%m/%Y, %I:%M:%S %p')}",
    }


def make_call(db, ctx: AccountContext, data: Dict[str, Any]) -> Dict[str, Any]:
    phone = normalize_phone(data.get("phoneNumber"))
    name = data.get("memberName") or ctx.profile.get("full_name") or "User"

    if data.get("scheduledAt"):
        return schedule_call(db, ctx, phone, name, data["scheduledAt"])

    client = get_twilio_client()
    message = generate_call_script(db, ctx.account_id, name)
    call = place_call(client, phone, message)
    _insert_call(db, ctx, phone, name, now_pkt(), "completed", call.sid, message)

    logger.info("call_placed", account_id=ctx.account_id, call_sid=call.sid)
    return {
        "success": True,
        "scheduled": False,
        "callSid": call.sid,
        "message": f"Call initiated to {name} ({phone})",
        "urduMessage": message,
    }


def list_calls(db, ctx: AccountContext) -> Dict[str, Any]:
    rows = db.execute(
        "SELECT * FROM scheduled_calls WHERE account_id = %s ORDER BY created_at DESC LIMIT 20",
        (ctx.account_id,),
    ).fetchall()
    return {"calls": rows}


def quick_call(db, ctx: AccountContext) -> Dict[str, Any]:
    """Call every member of the account that has a phone number on file."""
    reachable = [
        m for m in fetch_members(db, ctx.account_id)
        if len(member_phone(m) or "") >= MIN_PHONE_LENGTH
    ]
    if not reachable:
        raise ValidationError(
            "No family members have phone numbers. Add phone numbers in Settings → Members."
        )

    client = get_twilio_client()
    results: List[Dict[str, Any]] = []
    for member in reachable:
        name = member.get("full_name") or "Family Member"
        phone = member_phone(member)
        try:
            phone = normalize_phone(phone)
            message = generate_call_script(db, ctx.account_id, name)
            call = place_call(client, phone, message)
            _insert_call(db, ctx, phone, name, now_pkt(), "completed", call.sid, message)
            results.append({"member": name, "phone": phone, "status": "called", "sid": call.sid})
        except Exception as e:
            db.rollback()
            logger.error("quick_call_failed", exc=e, account_id=ctx.account_id, member=name)
            results.append({"member": name, "phone": phone, "status": "failed", "error": str(e)})

    called = sum(1 for r in results if r["status"] == "called")
    logger.info("quick_call_finished", account_id=ctx.account_id, called=called, total=len(reachable))
    return {
        "success": True,
        "message": f"Called {called} of {len(reachable)} members",
        "results": results,
    }


def process_due_calls(db) -> Dict[str, Any]:
    """
    Place every pending call that is due, oldest first.

    Rows are not leased, so two overlapping runs can pick up the same call.
    """
    due = db.execute(
        """
        SELECT * FROM scheduled_calls
        WHERE status = 'pending' AND scheduled_at <= %s
        ORDER BY scheduled_at ASC
        LIMIT %s
        """,
        (now_pkt(), DUE_BATCH_SIZE),
    ).fetchall()
    if not due:
        return {"processed": 0, "message": "No calls due"}

    client = get_twilio_client()
    processed = 0
    results: List[Dict[str, Any]] = []
    for row in due:
        try:
            message = generate_call_script(db, row["account_id"], row.get("member_name") or "User")
            call = place_call(client, row["phone_number"], message)
            db.execute(
                "UPDATE scheduled_calls SET status = 'completed', twilio_sid = %s, message_text = %s "
                "WHERE id = %s",
                (call.sid, message, row["id"]),
            )
            db.commit()
            processed += 1
            results.append({"id": row["id"], "status": "completed", "sid": call.sid})
        except Exception as e:
            db.rollback()
            logger.error("scheduled_call_failed", exc=e, call_id=row["id"])
            db.execute("UPDATE scheduled_calls SET status = 'failed' WHERE id = %s", (row["id"],))
            db.commit()
            results.append({"id": row["id"], "status": "failed", "error": str(e)})

    logger.info("scheduled_calls_processed", processed=processed, due=len(due))
    return {"processed": processed, "results": results}


def build_twiml(message: Optional[str]) -> str:
    """Spoken message twice, then a goodbye."""
    message = message or DEFAULT_WEBHOOK_MESSAGE
    response = VoiceResponse()
    response.pause(length=1)
    response.say(message, **SAY_OPTIONS)
    response.pause(length=1)
    response.say(message, **SAY_OPTIONS)
    response.pause(length=2)
    response.say(CLOSING_MESSAGE, **SAY_OPTIONS)
    return str(response)


def build_error_twiml() -> str:
    response = VoiceResponse()
    response.say(ERROR_MESSAGE, **SAY_OPTIONS)
    return str(response)


def record_status(db, call_sid: Optional[str], status: Optional[str], to=None, duration=None) -> None:
    logger.info("call_status", call_sid=call_sid, status=status, to=to, duration=duration)
    if call_sid and status in FAILED_STATUSES:
        db.execute("UPDATE scheduled_calls SET status = 'failed' WHERE twilio_sid = %s", (call_sid,))
        db.commit()
