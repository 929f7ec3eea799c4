"""
Services Module - Business logic and service layer
Includes profiles, account resolution, transactions, members, analytics and calls
"""

from .transaction_service import TransactionService, format_transaction
from .account_service import AccountContext, get_account_for_user

__all__ = ["TransactionService", "format_transaction", "AccountContext", "get_account_for_user"]
