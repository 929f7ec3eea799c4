from flask import Blueprint, jsonify, request

from auth import require_login
from database import get_db
from routes import current_context, json_body
from services.member_service import invite_member, list_members, remove_member, update_member

members_bp = Blueprint("members", __name__)


@members_bp.route("/api/members", methods=["GET"])
@require_login
def members_list_api():
    db = get_db()
    return jsonify(list_members(db, current_context())), 200


@members_bp.route("/api/members", methods=["POST"])
@require_login
def members_invite_api():
    data = json_body()
    db = get_db()
    result = invite_member(db, current_context(), data.get("email"), data.get("role"))
    return jsonify(result), 200


@members_bp.route("/api/members", methods=["DELETE"])
@require_login
def members_remove_api():
    member_id = request.args.get("memberId") or json_body().get("memberId")
    db = get_db()
    return jsonify(remove_member(db, current_context(), member_id)), 200


@members_bp.route("/api/members", methods=["PATCH"])
@require_login
def members_update_api():
    db = get_db()
    return jsonify(update_member(db, current_context(), json_body())), 200
