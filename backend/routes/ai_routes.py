"""Voice capture, bill scanning and the advisor chat"""

import json

from flask import Blueprint, jsonify

from auth import require_login
from core import AppError, AuthorizationError, ValidationError, get_logger
from core.dates import today_pkt
from database import get_db
from llm.advisor import agentic_advice, simple_advice
from llm.extraction import extract_voice_transaction, extract_voice_transactions, scan_bill, should_autosave
from routes import current_context, json_body
from services.transaction_service import TransactionService

logger = get_logger(__name__)

ai_bp = Blueprint("ai", __name__)


def _require_transcript(data) -> str:
    transcript = (data.get("transcript") or "").strip()
    if not transcript:
        raise ValidationError("No transcript provided", field="transcript")
    return transcript


@ai_bp.route("/api/process-voice", methods=["POST"])
@require_login
def process_voice_api():
    data = json_body()
    transcript = _require_transcript(data)
    result = extract_voice_transaction(transcript, data.get("language") or "en")
    return jsonify(result), 200


@ai_bp.route("/api/process-voice-agentic", methods=["POST"])
@require_login
def process_voice_agentic_api():
    data = json_body()
    transcript = _require_transcript(data)
    transactions, summary = extract_voice_transactions(transcript, data.get("language") or "en")

    saved_count = 0
    if data.get("autoSave"):
        db = get_db()
        try:
            ctx = current_context()
        except AppError as e:
            ctx = None
            logger.warning("voice_autosave_skipped", error=e.message)

        if ctx is not None and ctx.can_write:
            for tx in transactions:
                if not should_autosave(tx):
                    continue
                try:
                    TransactionService.record_transaction(
                        db,
                        ctx.account_id,
                        ctx.profile_id,
                        tx["type"],
                        tx["amount"],
                        category=tx["category"],
                        description=tx["description"],
                        date=today_pkt(),
                        source="voice",
                    )
                except AppError:
                    continue
                tx["saved"] = True
                saved_count += 1

    first = transactions[0]
    logger.info("voice_processed", total=len(transactions), saved=saved_count)
    return jsonify(
        {
            "transactions": transactions,
            "savedCount": saved_count,
            "totalCount": len(transactions),
            "summary": summary,
            "type": first["type"],
            "amount": first["amount"],
            "category": first["category"],
            "description": first["description"],
            "confidence": first["confidence"],
            "saved": saved_count > 0,
        }
    ), 200


@ai_bp.route("/api/scan-bill", methods=["POST"])
@require_login
def scan_bill_api():
    data = json_body()
    bill = scan_bill(data.get("image"))

    if data.get("autoSave") and bill.get("is_bill", True) and bill["amount"] > 0:
        db = get_db()
        ctx = current_context()
        if not ctx.can_write:
            raise AuthorizationError("Viewers cannot add transactions")
        metadata = json.dumps({"merchant": bill.get("merchant"), "items": bill.get("items") or []})
        bill["transactionId"] = TransactionService.record_transaction(
            db,
            ctx.account_id,
            ctx.profile_id,
            "expense",
            bill["amount"],
            category=bill.get("category"),
            description=bill.get("description") or "",
            date=bill.get("date"),
            source="bill_scan",
            metadata=metadata,
        )
        bill["saved"] = True

    return jsonify(bill), 200


@ai_bp.route("/api/advisor", methods=["POST"])
@require_login
def advisor_api():
    data = json_body()
    if not (data.get("message") or "").strip():
        raise ValidationError("No message provided", field="message")
    db = get_db()
    result = simple_advice(
        db, current_context(), data.get("message"), data.get("language") or "en", data.get("history")
    )
    return jsonify(result), 200


@ai_bp.route("/api/advisor-agentic", methods=["POST"])
@require_login
def advisor_agentic_api():
    data = json_body()
    if not (data.get("message") or "").strip():
        raise ValidationError("No message provided", field="message")
    db = get_db()
    result = agentic_advice(
        db, current_context(), data.get("message"), data.get("language") or "en", data.get("history")
    )
    return jsonify(result), 200
