"""Phone call endpoints, including the callbacks Twilio itself hits"""

from flask import Blueprint, Response, jsonify, request

from auth import require_cron, require_login
from core import get_logger
from database import get_db
from routes import current_context, json_body
from services import call_service

logger = get_logger(__name__)

calls_bp = Blueprint("calls", __name__)

TWIML_MIMETYPE = "text/xml"


def _twiml(body: str) -> Response:
    return Response(body, mimetype=TWIML_MIMETYPE)


@calls_bp.route("/api/make-call", methods=["POST"])
@require_login
def make_call_api():
    db = get_db()
    return jsonify(call_service.make_call(db, current_context(), json_body())), 200


@calls_bp.route("/api/make-call", methods=["GET"])
@require_login
def list_calls_api():
    db = get_db()
    return jsonify(call_service.list_calls(db, current_context())), 200


@calls_bp.route("/api/quick-call", methods=["POST"])
@require_login
def quick_call_api():
    db = get_db()
    return jsonify(call_service.quick_call(db, current_context())), 200


@calls_bp.route("/api/cron/process-calls", methods=["GET"])
@require_cron
def process_calls_api():
    return jsonify(call_service.process_due_calls(get_db())), 200


@calls_bp.route("/api/twilio-webhook", methods=["GET", "POST"])
def twilio_webhook_api():
    try:
        return _twiml(call_service.build_twiml(request.args.get("message")))
    except Exception as e:
        logger.error("twiml_render_failed", exc=e)
        return _twiml(call_service.build_error_twiml())


@calls_bp.route("/api/twilio-status", methods=["POST"])
def twilio_status_api():
    """Twilio always gets a 200 so it stops retrying the callback."""
    try:
        call_service.record_status(
            get_db(),
            request.form.get("CallSid"),
            request.form.get("CallStatus"),
            to=request.form.get("To"),
            duration=request.form.get("CallDuration"),
        )
    except Exception as e:
        logger.error("call_status_update_failed", exc=e)
    return Response("OK", status=200, mimetype="text/plain")
