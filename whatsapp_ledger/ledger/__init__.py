"""Ledger store operations: users, contacts, transactions and dedup markers."""

from .contacts import ContactResolver, normalize_name
from .dedup import MessageDeduplicator
from .transactions import DailySummary, TransactionLedger, total_balance
from .users import UserDirectory

__all__ = [
    "ContactResolver",
    "DailySummary",
    "MessageDeduplicator",
    "TransactionLedger",
    "UserDirectory",
    "normalize_name",
    "total_balance",
]
