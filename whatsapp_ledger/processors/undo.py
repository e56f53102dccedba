from ..ledger import TransactionLedger
from ..models import Intent
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput, format_amount


class UndoProcessor(MessageProcessor):
    """Soft-deletes the user's most recent transaction."""

    def __init__(self, ledger: TransactionLedger, messenger: Messenger):
        super().__init__(messenger)
        self.ledger = ledger

    def can_handle(self, context: ProcessContext) -> bool:
        return context.parsed is not None and context.parsed.intent == Intent.UNDO

    async def process(self, context: ProcessContext) -> ProcessOutput:
        transaction = await self.ledger.delete_last_transaction(context.user.id)

        if transaction is None:
            response = "⚠️ Nothing to undo."
            await self.reply(context, response)
            return ProcessOutput(response, context.parsed)

        response = (
            "↩️ *Undone*\n\n"
            f"Removed: {format_amount(transaction.amount)} ({transaction.intent})\n"
            f"Note: {transaction.description or transaction.category}"
        )
        await self.reply(context, response)
        return ProcessOutput(response, context.parsed, transaction_id=transaction.id)
