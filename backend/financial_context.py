"""Financial summaries shared by the advisor, phone calls and dashboards"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Tuple

from core.dates import days_ago_pkt, first_of_month_pkt, today_pkt
from services.transaction_service import TransactionService, member_display_name, to_float


def summarize(rows: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    income = expenses = 0.0
    count = 0
    for row in rows:
        count += 1
        if row["type"] == "income":
            income += to_float(row["amount"])
        elif row["type"] == "expense":
            expenses += to_float(row["amount"])
    return {"income": income, "expenses": expenses, "net": income - expenses, "count": count}


def category_totals(rows: Iterable[Dict[str, Any]], tx_type: str = "expense") -> List[Tuple[str, float]]:
    """(category, total) pairs for one transaction type, largest first."""
    totals: Dict[str, float] = defaultdict(float)
    for row in rows:
        if row["type"] == tx_type:
            totals[row.get("category_name") or "Other"] += to_float(row["amount"])
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def get_balance(db, account_id: int) -> Dict[str, float]:
    """All-time income, expenses and balance for an account."""
    row = db.execute(
        """
        SELECT
            SUM(CASE WHEN type = 'income' THEN amount ELSE 0 END) AS total_income,
            SUM(CASE WHEN type = 'expense' THEN amount ELSE 0 END) AS total_expense,
            COUNT(*) AS tx_count
        FROM transactions
        WHERE account_id = %s
        """,
        (account_id,),
    ).fetchone() or {}

    income = to_float(row.get("total_income"))
    expenses = to_float(row.get("total_expense"))
    return {
        "income": income,
        "expenses": expenses,
        "balance": income - expenses,
        "count": int(row.get("tx_count") or 0),
    }


def count_members(db, account_id: int) -> int:
    row = db.execute(
        "SELECT COUNT(*) AS c FROM account_members WHERE account_id = %s", (account_id,)
    ).fetchone()
    return int((row or {}).get("c") or 0) or 1


def get_month_summary(db, account_id: int) -> Dict[str, Any]:
    """This month's totals plus all-time balance, used for call scripts"""
    rows = TransactionService.fetch(db, account_id, start=first_of_month_pkt(), end=today_pkt())
    month = summarize(rows)
    return {
        "total_income": month["income"],
        "total_expense": month["expenses"],
        "net": month["net"],
        "transaction_count": month["count"],
        "balance": get_balance(db, account_id)["balance"],
        "top_expenses": category_totals(rows)[:3],
        "member_count": count_members(db, account_id),
    }


def build_simple_context(db, account_id: int) -> str:
    """Short context block from the 50 most recent transactions."""
    rows = TransactionService.fetch(db, account_id, limit=50)
    if not rows:
        return "The user has no transactions recorded yet."

    totals = summarize(rows)
    top = category_totals(rows)[:5]
    dates = sorted(str(r["transaction_date"])[:10] for r in rows)
    lines = [
        f"Recent transactions analysed: {totals['count']} ({dates[0]} to {dates[-1]})",
        f"Total income: PKR {round(totals['income']):,}",
        f"Total expenses: PKR {round(totals['expenses']):,}",
        f"Net: PKR {round(totals['net']):,}",
    ]
    if top:
        lines.append(
            "Top expense categories: "
            + ", ".join(f"{name} (PKR {round(amount):,})" for name, amount in top)
        )
    return "\n".join(lines)


def build_advisor_context(db, account: Dict[str, Any], members: List[Dict[str, Any]]) -> str:
    """Baseline data block placed in the agentic advisor's system prompt."""
    recent = TransactionService.fetch(db, account["id"], start=days_ago_pkt(30), end=today_pkt())
    period = summarize(recent)
    balance = get_balance(db, account["id"])
    last = TransactionService.fetch(db, account["id"], limit=1)

    member_names = ", ".join(
        f"{m.get('full_name') or m.get('email') or m.get('invited_email') or 'Unknown'} ({m['role']})"
        for m in members
    ) or "none"

    lines = [
        "",
        "📊 FINANCIAL DATA (PKR):",
        f"- Account: {account.get('name')} ({account.get('mode')})",
        f"- Members: {member_names}",
        f"- Last 30 days: income {round(period['income']):,}, expenses {round(period['expenses']):,}, "
        f"net {round(period['net']):,} across {period['count']} transactions",
        f"- all_time_balance: {round(balance['balance']):,} "
        f"(income {round(balance['income']):,} - expenses {round(balance['expenses']):,})",
    ]
    top = category_totals(recent)[:5]
    if top:
        lines.append(
            "- Top expense categories (30 days): "
            + ", ".join(f"{name} {round(amount):,}" for name, amount in top)
        )
    if last:
        tx = last[0]
        lines.append(
            f"- Last transaction: {tx['type']} PKR {round(to_float(tx['amount'])):,} "
            f"({tx.get('category_name') or 'Other'}) on {str(tx['transaction_date'])[:10]} "
            f"by {member_display_name(tx)}"
        )
    lines.append(f"- Today's date: {today_pkt()}")
    return "\n".join(lines)
