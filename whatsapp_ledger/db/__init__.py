"""Database module for the ledger store."""

from .models import Base, Contact, ProcessedMessage, Transaction, User
from .session import async_database_url, close_db, get_db, get_session_factory, init_db

__all__ = [
    "Base",
    "Contact",
    "ProcessedMessage",
    "Transaction",
    "User",
    "async_database_url",
    "close_db",
    "get_db",
    "get_session_factory",
    "init_db",
]
