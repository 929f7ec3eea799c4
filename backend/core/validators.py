"""Input validation module for API requests

Provides validation for:
- Transactions (type, amount, date, source)
- Invitations (emails, member roles)
- Phone numbers for outbound calls
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from .error_handler import ValidationError

TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_SOURCES = ("manual", "voice", "auto", "bill_scan")
ACCOUNT_MODES = ("individual", "family", "shop")
MEMBER_ROLES = ("owner", "admin", "member", "viewer")
ASSIGNABLE_ROLES = ("admin", "member", "viewer")
LANGUAGES = ("en", "ur")

PHONE_REGEX = re.compile(r"^\+?\d{10,15}$")


class TransactionValidator:
    """Validates transaction data"""

    MAX_AMOUNT = 999_999_999_999
    MAX_DESCRIPTION = 500

    @classmethod
    def validate_transaction(
        cls, data: Dict[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate transaction data.

        With ``partial`` only the supplied fields are checked, which is what
        updates need.

        Raises:
            ValidationError: If validation fails
        """
        result: Dict[str, Any] = {}

        if not partial or "type" in data:
            tx_type = str(data.get("type") or "").strip().lower()
            if tx_type not in TRANSACTION_TYPES:
                raise ValidationError("Type must be 'income' or 'expense'", field="type")
            result["type"] = tx_type

        if not partial or "amount" in data:
            result["amount"] = cls.validate_amount(data.get("amount"))

        if "category" in data:
            category = str(data.get("category") or "").strip()
            result["category"] = category[:100] or None

        if "description" in data:
            description = str(data.get("description") or "").strip()
            result["description"] = description[: cls.MAX_DESCRIPTION]

        date = data.get("date")
        if date:
            result["date"] = validate_date(date)

        source = data.get("source")
        if source:
            if source not in TRANSACTION_SOURCES:
                raise ValidationError(
                    f"Source must be one of: {', '.join(TRANSACTION_SOURCES)}",
                    field="source",
                )
            result["source"] = source

        return result

    @classmethod
    def validate_amount(cls, value: Any) -> float:
        try:
            amount = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Amount must be a number", field="amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        if amount > cls.MAX_AMOUNT:
            raise ValidationError("Amount is too large", field="amount")
        return amount


def validate_date(value: str) -> str:
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date().isoformat()
    except ValueError:
        raise ValidationError("Date format: YYYY-MM-DD", field="date")


def validate_email(email: Optional[str]) -> str:
    """Light check matching what invitations accept: anything with an @."""
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Valid email is required", field="email")
    return email


def validate_role(role: Optional[str], default: str = "member") -> str:
    role = (role or default).strip().lower()
    if role not in ASSIGNABLE_ROLES:
        raise ValidationError(
            f"Role must be one of: {', '.join(ASSIGNABLE_ROLES)}", field="role"
        )
    return role


def normalize_phone(phone: Optional[str]) -> str:
    """Strip formatting and return an E.164-style number with a leading +."""
    if not phone:
        raise ValidationError("Phone number is required", field="phoneNumber")
    clean = re.sub(r"[\s\-()]", "", str(phone))
    if not PHONE_REGEX.match(clean):
        raise ValidationError(
            "Invalid phone number format. Use +92XXXXXXXXXX", field="phoneNumber"
        )
    return clean if clean.startswith("+") else f"+{clean}"
