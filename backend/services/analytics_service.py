"""Read-only aggregations for dashboards, charts and statements"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from core import ValidationError
from core.dates import first_of_month_pkt, month_keys, months_back_pkt, to_iso_date, today_pkt
from core.validators import validate_date
from financial_context import get_balance, summarize
from services.account_service import AccountContext
from services.member_service import fetch_members
from services.transaction_service import TransactionService, format_transaction, round_half_up, to_float

DEFAULT_COLOR = "#94A3B8"
DEFAULT_NAME_UR = "دیگر"

CSV_HEADER = "Date,Type,Amount (PKR),Category,Description,Source,Added By"


def empty_dashboard() -> Dict[str, Any]:
    return {
        "totalIncome": 0,
        "totalExpenses": 0,
        "netCashFlow": 0,
        "balance": 0,
        "recentTransactions": [],
        "transactionCount": 0,
    }


def dashboard_stats(db, ctx: AccountContext) -> Dict[str, Any]:
    month_rows = TransactionService.fetch(
        db, ctx.account_id, start=first_of_month_pkt(), end=today_pkt()
    )
    month = summarize(month_rows)
    recent = TransactionService.fetch(db, ctx.account_id, limit=10)
    return {
        "totalIncome": month["income"],
        "totalExpenses": month["expenses"],
        "netCashFlow": month["net"],
        "balance": get_balance(db, ctx.account_id)["balance"],
        "recentTransactions": [format_transaction(r) for r in recent],
        "transactionCount": month["count"],
    }


def empty_analytics() -> Dict[str, Any]:
    return {"monthlyTrend": [], "categoryBreakdown": [], "dailySpending": []}


def analytics(db, ctx: AccountContext) -> Dict[str, Any]:
    """Six-month trend, this month's expense categories and daily spend."""
    keys = month_keys(6)
    trend = {key: {"month": label, "income": 0.0, "expenses": 0.0} for key, label in keys}
    for row in TransactionService.fetch(
        db, ctx.account_id, start=months_back_pkt(5), end=today_pkt(), newest_first=False
    ):
        bucket = trend.get(to_iso_date(row["transaction_date"])[:7])
        if bucket is None:
            continue
        field = "income" if row["type"] == "income" else "expenses"
        bucket[field] += to_float(row["amount"])

    month_expenses = TransactionService.fetch(
        db,
        ctx.account_id,
        start=first_of_month_pkt(),
        end=today_pkt(),
        tx_type="expense",
        newest_first=False,
    )
    categories: Dict[str, Dict[str, Any]] = {}
    daily: Dict[str, float] = defaultdict(float)
    for row in month_expenses:
        name = row.get("category_name") or "Other"
        entry = categories.setdefault(
            name,
            {
                "name": name,
                "nameUr": row.get("category_name_ur") or DEFAULT_NAME_UR,
                "color": row.get("category_color") or DEFAULT_COLOR,
                "value": 0.0,
            },
        )
        entry["value"] += to_float(row["amount"])
        daily[to_iso_date(row["transaction_date"])[5:]] += to_float(row["amount"])

    return {
        "monthlyTrend": [
            {"month": b["month"], "income": round_half_up(b["income"]), "expenses": round_half_up(b["expenses"])}
            for b in trend.values()
        ],
        "categoryBreakdown": sorted(
            ({**c, "value": round_half_up(c["value"])} for c in categories.values()),
            key=lambda c: c["value"],
            reverse=True,
        ),
        "dailySpending": [
            {"date": day, "amount": round_half_up(amount)} for day, amount in sorted(daily.items())
        ],
    }


def member_analytics(db, ctx: AccountContext) -> Dict[str, Any]:
    members = fetch_members(db, ctx.account_id)
    if not members:
        return {"members": [], "accountName": ctx.account.get("name")}

    month_rows = TransactionService.fetch(
        db, ctx.account_id, start=first_of_month_pkt(), end=today_pkt()
    )
    all_rows = TransactionService.fetch(db, ctx.account_id)

    result = []
    for member in members:
        profile_id = member.get("profile_id")
        mine = [r for r in month_rows if profile_id and r.get("added_by") == profile_id]
        mine_all = [r for r in all_rows if profile_id and r.get("added_by") == profile_id]
        month = summarize(mine)
        total = summarize(mine_all)

        cats: Dict[str, Dict[str, Any]] = {}
        for row in mine:
            if row["type"] != "expense":
                continue
            name = row.get("category_name") or "Other"
            entry = cats.setdefault(
                name, {"name": name, "color": row.get("category_color") or DEFAULT_COLOR, "amount": 0.0}
            )
            entry["amount"] += to_float(row["amount"])

        result.append(
            {
                "id": member["id"],
                "profileId": profile_id,
                "name": member.get("full_name")
                or member.get("invited_email")
                or member.get("email")
                or "Unknown",
                "email": member.get("email") or member.get("invited_email") or "",
                "avatar": member.get("avatar_url"),
                "role": member["role"],
                "accepted": bool(member.get("accepted")),
                "month": {
                    "income": round_half_up(month["income"]),
                    "expenses": round_half_up(month["expenses"]),
                    "net": round_half_up(month["net"]),
                    "transactionCount": month["count"],
                    "categories": [
                        {**c, "amount": round_half_up(c["amount"])}
                        for c in sorted(cats.values(), key=lambda c: c["amount"], reverse=True)
                    ],
                },
                "allTime": {
                    "income": round_half_up(total["income"]),
                    "expenses": round_half_up(total["expenses"]),
                    "balance": round_half_up(total["net"]),
                    "transactionCount": total["count"],
                },
            }
        )

    return {"members": result, "accountName": ctx.account.get("name")}


# === Statements ===


def statement_range(
    period: str, start: Optional[str] = None, end: Optional[str] = None
) -> Tuple[str, str]:
    today = today_pkt()
    if period == "custom":
        if not (start and end):
            raise ValidationError("Custom period requires start and end dates")
        start, end = validate_date(start), validate_date(end)
        if start > end:
            raise ValidationError("Start date must be before end date")
        return start, end
    if period == "weekly":
        return (date.fromisoformat(today) - timedelta(days=7)).isoformat(), today
    return first_of_month_pkt(), today


def build_statement(
    db,
    ctx: AccountContext,
    period: str = "monthly",
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    date_start, date_end = statement_range(period, start, end)
    rows = TransactionService.fetch(db, ctx.account_id, start=date_start, end=date_end)

    members = [
        {
            "name": (m.get("full_name") or m.get("email") or "Unknown")
            if m.get("profile_id")
            else (m.get("invited_email") or "Pending"),
            "email": m.get("email") or m.get("invited_email") or "",
            "role": m["role"],
            "accepted": bool(m.get("accepted")),
        }
        for m in fetch_members(db, ctx.account_id)
    ]
    user_name = ctx.profile.get("full_name") or ctx.profile.get("email") or "User"

    totals = summarize(rows)
    breakdown: Dict[str, Dict[str, float]] = {}
    for row in rows:
        entry = breakdown.setdefault(row.get("category_name") or "Other", {"income": 0.0, "expense": 0.0})
        entry[row["type"]] += to_float(row["amount"])

    transactions = []
    for row in rows:
        tx = format_transaction(row)
        transactions.append(
            {
                "date": tx["date"],
                "type": tx["type"],
                "amount": tx["amount"],
                "category": tx["category"],
                "categoryUr": tx["categoryUr"],
                "description": tx["description"],
                "descriptionUr": tx["descriptionUr"],
                "source": tx["source"],
                "addedBy": tx["addedBy"] or user_name,
            }
        )

    return {
        "statement": {
            "accountName": ctx.account.get("name"),
            "accountType": "Family Account" if len(members) > 1 else "Personal Account",
            "userName": user_name,
            "period": {"start": date_start, "end": date_end, "type": period},
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "members": members,
        },
        "summary": {
            "totalIncome": totals["income"],
            "totalExpenses": totals["expenses"],
            "netCashFlow": totals["net"],
            "transactionCount": totals["count"],
            "categoryBreakdown": breakdown,
        },
        "transactions": transactions,
    }


def _amount_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _quoted(value: Any) -> str:
    return '"' + str(value or "").replace('"', '""') + '"'


def statement_to_csv(statement: Dict[str, Any]) -> str:
    # Free-text columns are always quoted
    lines: List[str] = [CSV_HEADER]
    for tx in statement["transactions"]:
        lines.append(
            ",".join(
                [
                    tx["date"],
                    tx["type"],
                    _amount_text(tx["amount"]),
                    _quoted(tx["category"]),
                    _quoted(tx["description"]),
                    tx["source"],
                    _quoted(tx["addedBy"]),
                ]
            )
        )
    return "\n".join(lines)


def statement_filename(statement: Dict[str, Any]) -> str:
    period = statement["statement"]["period"]
    return f"HisaabKitaab_Statement_{period['start']}_to_{period['end']}.csv"
