"""Transaction Service

Every ingestion path (manual form, voice, bill scan, advisor tool) converges
on ``TransactionService.record_transaction``. Reads share one joined SELECT so
category display fields and the adding member's name come back together.
"""

import math
from typing import Any, Dict, List, Optional

from core import AppError, AuthorizationError, NotFoundError, ValidationError, get_logger
from core.dates import to_iso_date, today_pkt
from core.validators import TransactionValidator

logger = get_logger(__name__)

TX_SELECT = """
    SELECT t.id, t.account_id, t.type, t.amount, t.description_en, t.description_ur,
           t.source, t.transaction_date, t.created_at, t.added_by, t.category_id,
           c.name_en AS category_name, c.name_ur AS category_name_ur,
           c.icon AS category_icon, c.color AS category_color,
           p.full_name AS added_by_name, p.email AS added_by_email
    FROM transactions t
    LEFT JOIN categories c ON c.id = t.category_id
    LEFT JOIN profiles p ON p.id = t.added_by
"""

MAX_LIST_LIMIT = 200


def round_half_up(value: float) -> int:
    """Half-up rounding (2.5 -> 3), unlike Python's banker's round()."""
    return int(math.floor(value + 0.5))


def to_float(value) -> float:
    """NUMERIC columns arrive as Decimal; JSON and arithmetic want float."""
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def member_display_name(row: Dict[str, Any], default: str = "Unknown") -> str:
    return row.get("added_by_name") or row.get("added_by_email") or default


def format_transaction(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "type": row["type"],
        "amount": to_float(row["amount"]),
        "category": row.get("category_name") or "Other",
        "categoryUr": row.get("category_name_ur") or "دیگر",
        "icon": row.get("category_icon") or "circle-dot",
        "color": row.get("category_color") or "#94A3B8",
        "description": row.get("description_en") or "",
        "descriptionUr": row.get("description_ur") or "",
        "source": row.get("source") or "manual",
        "date": to_iso_date(row.get("transaction_date")),
        "addedBy": member_display_name(row) if row.get("added_by") else None,
        "createdAt": row["created_at"].isoformat() if row.get("created_at") else None,
    }


class TransactionService:
    """Queries and writes against the transactions table, scoped to one account"""

    @staticmethod
    def resolve_category_id(db, account_id: int, category: Optional[str]) -> Optional[int]:
        """
        Map a free-text category to a category id.

        Matches case-insensitively when either name contains the other, then
        falls back to "Other", then to no category at all.
        """
        rows = db.execute(
            """
            SELECT id, name_en FROM categories
            WHERE is_default = TRUE OR account_id = %s
            ORDER BY account_id NULLS LAST, sort_order, id
            """,
            (account_id,),
        ).fetchall()
        if not rows:
            return None

        wanted = (category or "").strip().lower()
        if wanted:
            for row in rows:
                name = (row["name_en"] or "").lower()
                if name and (wanted in name or name in wanted):
                    return row["id"]

        other = next((r for r in rows if (r["name_en"] or "").lower() == "other"), None)
        return other["id"] if other else None

    @staticmethod
    def record_transaction(
        db,
        account_id: int,
        added_by: int,
        tx_type: str,
        amount: float,
        category: Optional[str] = None,
        description: str = "",
        date: Optional[str] = None,
        source: str = "manual",
        metadata: Optional[str] = None,
    ) -> int:
        """
        Insert a transaction and return its id.

        Args:
            db: Database connection
            account_id: Account the line belongs to
            added_by: Profile id of whoever created it
            tx_type: 'income' or 'expense'
            amount: Transaction amount in PKR
            category: Free-text category, resolved to a category id
            description: Optional description
            date: Optional date (defaults to today in PKT)
            source: manual, voice, auto or bill_scan
            metadata: Optional JSON string stored alongside the row

        Raises:
            AppError: If the insert fails
        """
        date = date or today_pkt()
        try:
            category_id = TransactionService.resolve_category_id(db, account_id, category)
            row = db.execute(
                """
                INSERT INTO transactions
                    (account_id, added_by, type, amount, category_id, description_en,
                     source, transaction_date, metadata)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    account_id,
                    added_by,
                    tx_type,
                    amount,
                    category_id,
                    description or None,
                    source,
                    date,
                    metadata,
                ),
            ).fetchone()
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                "transaction_record_failed",
                exc=e,
                account_id=account_id,
                type=tx_type,
                amount=amount,
                source=source,
            )
            raise AppError(
                "Failed to create transaction",
                code="TRANSACTION_FAILED",
                status_code=500,
                details=str(e),
            )

        logger.info(
            "transaction_recorded",
            transaction_id=row["id"],
            account_id=account_id,
            added_by=added_by,
            type=tx_type,
            amount=amount,
            category=category,
            source=source,
            date=date,
        )
        return row["id"]

    @staticmethod
    def create_transaction(db, ctx, data: Dict[str, Any], source: Optional[str] = None) -> int:
        """Validate a request body and record it for the request's account."""
        if not data.get("type") or not data.get("amount"):
            raise ValidationError("Type and amount are required")
        if not ctx.can_write:
            raise AuthorizationError("Viewers cannot add transactions")

        fields = TransactionValidator.validate_transaction(data)
        return TransactionService.record_transaction(
            db,
            ctx.account_id,
            ctx.profile_id,
            fields["type"],
            round_half_up(fields["amount"]),
            category=fields.get("category") or "Other",
            description=fields.get("description", ""),
            date=fields.get("date"),
            source=source or fields.get("source") or "manual",
        )

    @staticmethod
    def fetch(
        db,
        account_id: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
        tx_type: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List[Dict[str, Any]]:
        where = ["t.account_id = %s"]
        params: List[Any] = [account_id]
        if start:
            where.append("t.transaction_date >= %s")
            params.append(start)
        if end:
            where.append("t.transaction_date <= %s")
            params.append(end)
        if tx_type in ("income", "expense"):
            where.append("t.type = %s")
            params.append(tx_type)
        if category:
            where.append("c.name_en ILIKE %s")
            params.append(f"%{category}%")

        order = "DESC" if newest_first else "ASC"
        sql = (
            f"{TX_SELECT} WHERE {' AND '.join(where)} "
            f"ORDER BY t.transaction_date {order}, t.created_at {order}, t.id {order}"
        )
        if limit:
            sql += " LIMIT %s"
            params.append(int(limit))
        return db.execute(sql, params).fetchall()

    @staticmethod
    def list_transactions(db, account_id: int, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            limit = int(filters.get("limit") or 50)
        except (TypeError, ValueError):
            limit = 50
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        rows = TransactionService.fetch(
            db,
            account_id,
            start=filters.get("start"),
            end=filters.get("end"),
            tx_type=filters.get("type"),
            category=filters.get("category"),
            limit=limit,
        )
        return [format_transaction(r) for r in rows]

    @staticmethod
    def update_transaction(db, account_id: int, tx_id: int, fields: Dict[str, Any]) -> None:
        existing = db.execute(
            "SELECT id FROM transactions WHERE id = %s AND account_id = %s",
            (tx_id, account_id),
        ).fetchone()
        if not existing:
            raise NotFoundError("Transaction")

        sets, params = [], []
        if "type" in fields:
            sets.append("type = %s")
            params.append(fields["type"])
        if "amount" in fields:
            sets.append("amount = %s")
            params.append(fields["amount"])
        if "category" in fields:
            sets.append("category_id = %s")
            params.append(
                TransactionService.resolve_category_id(db, account_id, fields["category"])
            )
        if "description" in fields:
            sets.append("description_en = %s")
            params.append(fields["description"] or None)
        if "date" in fields:
            sets.append("transaction_date = %s")
            params.append(fields["date"])
        if not sets:
            return

        params.extend([tx_id, account_id])
        db.execute(
            f"UPDATE transactions SET {', '.join(sets)} WHERE id = %s AND account_id = %s",
            params,
        )
        db.commit()
        logger.info("transaction_updated", transaction_id=tx_id, fields=sorted(fields))

    @staticmethod
    def delete_transaction(db, account_id: int, tx_id: int) -> None:
        row = db.execute(
            "DELETE FROM transactions WHERE id = %s AND account_id = %s RETURNING id",
            (tx_id, account_id),
        ).fetchone()
        if not row:
            db.rollback()
            raise NotFoundError("Transaction")
        db.commit()
        logger.info("transaction_deleted", transaction_id=tx_id, account_id=account_id)
