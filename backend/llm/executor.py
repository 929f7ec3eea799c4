"""LLM tool executor - runs advisor tool calls against the caller's account

Every handler receives the resolved account context, so a tool can only read
or write the account the request is already scoped to.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List

from core import AppError, get_logger
from core.dates import days_ago_pkt, today_pkt
from core.validators import TransactionValidator, validate_date
from financial_context import category_totals, get_balance, summarize
from services.account_service import AccountContext
from services.member_service import fetch_members
from services.transaction_service import TransactionService, to_float

logger = get_logger(__name__)


def _member_map(db, ctx: AccountContext):
    """(members, {profile_id: display name}) for the account."""
    rows = fetch_members(db, ctx.account_id)
    names = {
        r["profile_id"]: r.get("full_name") or r.get("email") or "Unknown"
        for r in rows
        if r.get("profile_id")
    }
    members = [
        {
            "name": names.get(r["profile_id"], "Unknown") if r.get("profile_id") else (r.get("invited_email") or "Pending"),
            "role": r["role"],
            "accepted": bool(r.get("accepted")),
            "profileId": r.get("profile_id"),
        }
        for r in rows
    ]
    return members, names


def _author(row: Dict[str, Any], names: Dict[int, str], ctx: AccountContext) -> str:
    fallback = ctx.profile.get("full_name") or "User"
    if row.get("added_by"):
        return names.get(row["added_by"], "Unknown")
    return fallback


def _days(args: Dict[str, Any]) -> int:
    try:
        days = int(args.get("days") or 30)
    except (TypeError, ValueError):
        days = 30
    return max(1, days)


def _top(pairs, limit: int = 5) -> List[Dict[str, Any]]:
    return [{"category": name, "amount": amount} for name, amount in pairs[:limit]]


def _create_transaction(db, ctx: AccountContext, args: Dict[str, Any]) -> Dict[str, Any]:
    if not ctx.can_write:
        return {"error": "Viewers cannot add transactions"}
    fields = TransactionValidator.validate_transaction(
        {"type": args.get("type"), "amount": args.get("amount")}
    )
    category = args.get("category") or "Other"
    date = validate_date(args["date"]) if args.get("date") else today_pkt()
    TransactionService.record_transaction(
        db,
        ctx.account_id,
        ctx.profile_id,
        fields["type"],
        fields["amount"],
        category=category,
        description=args.get("description") or "",
        date=date,
        source="auto",
    )
    return {
        "success": True,
        "message": f"Transaction created: {fields['type']} of PKR {args.get('amount')} for {category}",
        "transaction": args,
    }


def _get_recent_transactions(db, ctx: AccountContext, args: Dict[str, Any]) -> Dict[str, Any]:
    _, names = _member_map(db, ctx)
    try:
        limit = int(args.get("limit") or 10)
    except (TypeError, ValueError):
        limit = 10
    limit = max(1, min(limit, 50))
    tx_type = args.get("type") if args.get("type") in ("income", "expense") else None

    rows = TransactionService.fetch(db, ctx.account_id, tx_type=tx_type, limit=limit)
    if args.get("category"):
        wanted = str(args["category"]).lower()
        rows = [r for r in rows if wanted in (r.get("category_name") or "Other").lower()]

    return {
        "success": True,
        "transactions": [
            {
                "type": r["type"],
                "amount": to_float(r["amount"]),
                "category": r.get("category_name") or "Other",
                "description": r.get("description_en") or "",
                "date": str(r["transaction_date"])[:10],
                "addedBy": _author(r, names, ctx),
                "source": r.get("source") or "manual",
            }
            for r in rows
        ],
        "count": len(rows),
    }


def _member_breakdown(rows, names, ctx) -> List[Dict[str, Any]]:
    totals: Dict[str, Dict[str, float]] = defaultdict(lambda: {"expense": 0.0, "income": 0.0})
    for r in rows:
        totals[_author(r, names, ctx)][r["type"]] += to_float(r["amount"])
    return [{"name": name, **amounts} for name, amounts in totals.items()]


def _get_spending_summary(db, ctx: AccountContext, args: Dict[str, Any]) -> Dict[str, Any]:
    members, names = _member_map(db, ctx)
    days = _days(args)
    rows = TransactionService.fetch(db, ctx.account_id, start=days_ago_pkt(days))
    totals = summarize(rows)
    return {
        "success": True,
        "summary": {
            "period_days": days,
            "total_expense": totals["expenses"],
            "total_income": totals["income"],
            "net_savings": totals["net"],
            "transaction_count": totals["count"],
            "expense_by_category": dict(category_totals(rows, "expense")),
            "income_by_category": dict(category_totals(rows, "income")),
            "member_breakdown": _member_breakdown(rows, names, ctx),
            "family_members": [f"{m['name']} ({m['role']})" for m in members],
        },
    }


def _get_financial_overview(db, ctx: AccountContext, args: Dict[str, Any]) -> Dict[str, Any]:
    members, names = _member_map(db, ctx)
    days = _days(args)
    rows = TransactionService.fetch(db, ctx.account_id, start=days_ago_pkt(days))
    totals = summarize(rows)
    all_time = get_balance(db, ctx.account_id)
    income, expense = totals["income"], totals["expenses"]

    return {
        "success": True,
        "overview": {
            "account_name": ctx.account.get("name"),
            "period_days": days,
            "period_income": income,
            "period_expense": expense,
            "period_net_cash_flow": income - expense,
            "all_time_income": all_time["income"],
            "all_time_expense": all_time["expenses"],
            "all_time_balance": all_time["balance"],
            "savings_rate": f"{(income - expense) / income * 100:.1f}%" if income > 0 else "N/A",
            "total_transactions": totals["count"],
            "family_members": [{"name": m["name"], "role": m["role"]} for m in members],
            "top_expense_categories": _top(category_totals(rows, "expense")),
            "top_income_sources": _top(category_totals(rows, "income")),
            "member_breakdown": _member_breakdown(rows, names, ctx),
            "recent_transactions": [
                {
                    "type": r["type"],
                    "amount": to_float(r["amount"]),
                    "category": r.get("category_name") or "Other",
                    "description": r.get("description_en") or "",
                    "date": str(r["transaction_date"])[:10],
                    "addedBy": _author(r, names, ctx),
                }
                for r in rows[:5]
            ],
        },
    }


def _get_member_spending(db, ctx: AccountContext, args: Dict[str, Any]) -> Dict[str, Any]:
    members, names = _member_map(db, ctx)
    days = _days(args)
    rows = TransactionService.fetch(db, ctx.account_id, start=days_ago_pkt(days))

    data: Dict[Any, Dict[str, Any]] = {}
    for m in members:
        data[m["profileId"] or m["name"]] = {
            "name": m["name"],
            "role": m["role"],
            "expense": 0.0,
            "income": 0.0,
            "count": 0,
            "categories": defaultdict(float),
        }
    for r in rows:
        key = r.get("added_by") or _author(r, names, ctx)
        entry = data.setdefault(
            key,
            {
                "name": _author(r, names, ctx),
                "role": "member",
                "expense": 0.0,
                "income": 0.0,
                "count": 0,
                "categories": defaultdict(float),
            },
        )
        entry["count"] += 1
        amount = to_float(r["amount"])
        if r["type"] == "expense":
            entry["expense"] += amount
            entry["categories"][r.get("category_name") or "Other"] += amount
        else:
            entry["income"] += amount

    member_list = [
        {
            "name": m["name"],
            "role": m["role"],
            "total_expense": m["expense"],
            "total_income": m["income"],
            "net": m["income"] - m["expense"],
            "transaction_count": m["count"],
            "top_expense_categories": _top(
                sorted(m["categories"].items(), key=lambda kv: kv[1], reverse=True)
            ),
        }
        for m in data.values()
    ]
    spender = max(member_list, key=lambda m: m["total_expense"], default=None)
    earner = max(member_list, key=lambda m: m["total_income"], default=None)
    return {
        "success": True,
        "period_days": days,
        "members": member_list,
        "highest_spender": spender["name"] if spender else "N/A",
        "highest_earner": earner["name"] if earner else "N/A",
    }


TOOL_HANDLERS: Dict[str, Callable[..., Dict[str, Any]]] = {
    "create_transaction": _create_transaction,
    "get_recent_transactions": _get_recent_transactions,
    "get_spending_summary": _get_spending_summary,
    "get_financial_overview": _get_financial_overview,
    "get_member_spending": _get_member_spending,
}


def execute_action(db, ctx: AccountContext, action_name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one advisor tool call.

    Failures are returned as {"error": ...} so the model can read them on
    the next turn instead of the request failing.
    """
    handler = TOOL_HANDLERS.get(action_name)
    if handler is None:
        logger.warning("llm_unknown_tool", action=action_name)
        return {"error": "Unknown tool"}

    logger.info(
        "llm_action_started",
        action=action_name,
        account_id=ctx.account_id,
        args_keys=sorted(args or {}),
    )
    try:
        return handler(db, ctx, args or {})
    except AppError as e:
        logger.warning("llm_action_rejected", action=action_name, error=e.message, details=e.details)
        return {"error": f"{e.message}: {e.details}" if e.details else e.message}
    except Exception as e:
        db.rollback()
        logger.error("llm_action_failed", exc=e, action=action_name)
        return {"error": f"Tool {action_name} failed: {e}"}
