import json

from flask import Blueprint, g, jsonify, request
from svix.webhooks import Webhook, WebhookVerificationError

import config
from auth import require_login
from core import ConfigurationError, NotFoundError, ValidationError, get_logger
from database import get_db
from routes import json_body
from services.account_service import create_account, ensure_profile
from services.profile_service import find_profile, handle_clerk_event, set_language

logger = get_logger(__name__)

profile_bp = Blueprint("profile", __name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


@profile_bp.route("/api/ensure-profile", methods=["POST"])
@require_login
def ensure_profile_api():
    result = ensure_profile(get_db(), g.clerk_user_id)
    logger.info("profile_ensured", clerk_user_id=g.clerk_user_id, profile_id=result["profileId"])
    return jsonify(result), 200


@profile_bp.route("/api/onboarding", methods=["POST"])
@require_login
def onboarding_api():
    data = json_body()
    action = data.get("action")
    db = get_db()

    if action == "set-language":
        set_language(db, g.clerk_user_id, data.get("language"))
        logger.info("language_set", clerk_user_id=g.clerk_user_id, language=data.get("language"))
        return jsonify({"success": True}), 200

    if action == "set-mode":
        profile = find_profile(db, g.clerk_user_id)
        if not profile:
            raise NotFoundError("Profile")
        account = create_account(db, profile["id"], data.get("name"), data.get("mode"))
        return jsonify({"success": True, "accountId": account["id"]}), 200

    raise ValidationError("Unknown action", field="action")


@profile_bp.route("/api/webhooks/clerk", methods=["POST"])
def clerk_webhook_api():
    """Identity-provider user lifecycle events, signed with svix."""
    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        raise ValidationError("Missing svix headers")

    if not config.CLERK_WEBHOOK_SECRET:
        raise ConfigurationError("CLERK_WEBHOOK_SECRET is not configured")

    payload = request.get_data(as_text=True)
    try:
        Webhook(config.CLERK_WEBHOOK_SECRET).verify(payload, headers)
    except WebhookVerificationError as e:
        logger.warning("webhook_signature_invalid", error=str(e))
        raise ValidationError("Invalid signature")

    event = json.loads(payload)
    handle_clerk_event(get_db(), event)
    return jsonify({"received": True}), 200
