import logging
from typing import Optional, Sequence

from ..ledger import ContactResolver, TransactionLedger
from .balance import BalanceProcessor
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput
from .chat import ChatProcessor
from .confirmation import ConfirmationProcessor
from .daily_summary import DailySummaryProcessor
from .query import QueryProcessor
from .reply import ReplyProcessor
from .start import StartProcessor
from .transaction import TransactionProcessor
from .undo import UndoProcessor

logger = logging.getLogger(__name__)


class ProcessorRouter:
    """First processor whose ``can_handle`` accepts the context wins."""

    def __init__(self, processors: Sequence[MessageProcessor]):
        self.processors = list(processors)

    def select(self, context: ProcessContext) -> Optional[MessageProcessor]:
        for processor in self.processors:
            if processor.can_handle(context):
                return processor
        return None

    async def dispatch(self, context: ProcessContext) -> Optional[ProcessOutput]:
        processor = self.select(context)
        if processor is None:
            return None

        logger.info(
            "Routing message from user %s to %s",
            context.user.id,
            type(processor).__name__,
        )
        return await processor.process(context)


def build_router(
    ledger: TransactionLedger, contacts: ContactResolver, messenger: Messenger
) -> ProcessorRouter:
    return ProcessorRouter(
        [
            ConfirmationProcessor(ledger, messenger),
            StartProcessor(messenger),
            ReplyProcessor(ledger, messenger),
            BalanceProcessor(ledger, contacts, messenger),
            UndoProcessor(ledger, messenger),
            TransactionProcessor(ledger, contacts, messenger),
            DailySummaryProcessor(ledger, messenger),
            ChatProcessor(messenger),
            QueryProcessor(ledger, messenger),
        ]
    )
