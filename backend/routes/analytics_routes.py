from flask import Blueprint, Response, jsonify, request

from auth import require_login
from core import ProvisioningError, ValidationError, get_logger
from database import get_db
from routes import current_context
from services import analytics_service

logger = get_logger(__name__)

analytics_bp = Blueprint("analytics", __name__)

PERIODS = ("weekly", "monthly", "custom")


@analytics_bp.route("/api/dashboard-stats", methods=["GET"])
@require_login
def dashboard_stats_api():
    db = get_db()
    try:
        ctx = current_context()
    except ProvisioningError as e:
        logger.warning("dashboard_without_account", error=e.message)
        return jsonify(analytics_service.empty_dashboard()), 200
    return jsonify(analytics_service.dashboard_stats(db, ctx)), 200


@analytics_bp.route("/api/analytics", methods=["GET"])
@require_login
def analytics_api():
    db = get_db()
    try:
        ctx = current_context()
    except ProvisioningError as e:
        logger.warning("analytics_without_account", error=e.message)
        return jsonify(analytics_service.empty_analytics()), 200
    return jsonify(analytics_service.analytics(db, ctx)), 200


@analytics_bp.route("/api/member-analytics", methods=["GET"])
@require_login
def member_analytics_api():
    db = get_db()
    try:
        ctx = current_context()
    except ProvisioningError as e:
        logger.warning("member_analytics_without_account", error=e.message)
        return jsonify({"members": []}), 200
    return jsonify(analytics_service.member_analytics(db, ctx)), 200


@analytics_bp.route("/api/export-statement", methods=["GET"])
@require_login
def export_statement_api():
    period = request.args.get("period") or "monthly"
    fmt = request.args.get("format") or "json"
    if period not in PERIODS:
        raise ValidationError("Period must be weekly, monthly or custom", field="period")

    db = get_db()
    statement = analytics_service.build_statement(
        db, current_context(), period, request.args.get("start"), request.args.get("end")
    )
    logger.info(
        "statement_exported",
        period=period,
        format=fmt,
        transactions=len(statement["transactions"]),
    )

    if fmt == "csv":
        filename = analytics_service.statement_filename(statement)
        return Response(
            analytics_service.statement_to_csv(statement),
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return jsonify(statement), 200
