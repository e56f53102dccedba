from .balance import BalanceProcessor
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput
from .chat import ChatProcessor
from .confirmation import (
    CANCEL_DELETE_PREFIX,
    CONFIRM_DELETE_PREFIX,
    ConfirmationProcessor,
    delete_buttons,
)
from .daily_summary import DailySummaryProcessor
from .query import QueryProcessor, period_start
from .reply import ReplyProcessor
from .router import ProcessorRouter, build_router
from .start import StartProcessor
from .transaction import TransactionProcessor
from .undo import UndoProcessor

__all__ = [
    "BalanceProcessor",
    "CANCEL_DELETE_PREFIX",
    "CONFIRM_DELETE_PREFIX",
    "ChatProcessor",
    "ConfirmationProcessor",
    "DailySummaryProcessor",
    "MessageProcessor",
    "Messenger",
    "ProcessContext",
    "ProcessOutput",
    "ProcessorRouter",
    "QueryProcessor",
    "ReplyProcessor",
    "StartProcessor",
    "TransactionProcessor",
    "UndoProcessor",
    "build_router",
    "delete_buttons",
    "period_start",
]
