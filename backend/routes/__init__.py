"""HTTP blueprints, one per feature area"""

from flask import g, request

from database import get_db
from services.account_service import AccountContext, get_account_for_user


def current_context() -> AccountContext:
    """Profile, account and role for the logged-in user of this request."""
    ctx = getattr(g, "account_ctx", None)
    if ctx is None:
        ctx = get_account_for_user(get_db(), g.clerk_user_id)
        g.account_ctx = ctx
    return ctx


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
