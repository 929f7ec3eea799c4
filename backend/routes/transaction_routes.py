from flask import Blueprint, jsonify, request

from auth import require_login
from core import AuthorizationError, TransactionValidator, get_logger
from database import get_db
from routes import current_context, json_body
from services.transaction_service import TransactionService

logger = get_logger(__name__)

transactions_bp = Blueprint("transactions", __name__)


@transactions_bp.route("/api/create-transaction", methods=["POST"])
@transactions_bp.route("/api/transactions", methods=["POST"])
@require_login
def create_transaction_api():
    data = json_body()
    db = get_db()
    ctx = current_context()
    tx_id = TransactionService.create_transaction(db, ctx, data)
    logger.info("transaction_created", transaction_id=tx_id, account_id=ctx.account_id)
    return jsonify({"success": True, "transactionId": tx_id}), 200


@transactions_bp.route("/api/transactions", methods=["GET"])
@require_login
def list_transactions_api():
    db = get_db()
    ctx = current_context()
    filters = {
        key: request.args.get(key)
        for key in ("type", "category", "start", "end", "limit")
        if request.args.get(key)
    }
    transactions = TransactionService.list_transactions(db, ctx.account_id, filters)
    return jsonify({"transactions": transactions, "count": len(transactions)}), 200


@transactions_bp.route("/api/transactions/<int:tx_id>", methods=["PUT", "DELETE"])
@require_login
def transaction_detail_api(tx_id):
    db = get_db()
    ctx = current_context()
    if not ctx.can_write:
        raise AuthorizationError("Viewers cannot modify transactions")

    if request.method == "PUT":
        fields = TransactionValidator.validate_transaction(json_body(), partial=True)
        TransactionService.update_transaction(db, ctx.account_id, tx_id, fields)
        return jsonify({"success": True, "message": "Transaction updated"}), 200

    TransactionService.delete_transaction(db, ctx.account_id, tx_id)
    return jsonify({"success": True, "message": "Transaction deleted"}), 200
