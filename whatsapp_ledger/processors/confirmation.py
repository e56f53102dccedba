"""
Second phase of the two-phase delete: the user tapped Delete or Cancel.

The transaction id travels inside the button id itself
(``confirm_delete_<id>`` / ``cancel_delete_<id>``); nothing is stored
between the prompt and the tap.
"""

from typing import Optional

from ..db.models import Transaction
from ..ledger import TransactionLedger
from ..models import ButtonReply, Intent, ParsedIntent, ReplyButton
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput, format_amount

CONFIRM_DELETE_PREFIX = "confirm_delete_"
CANCEL_DELETE_PREFIX = "cancel_delete_"
NOT_FOUND = "⚠️ Transaction not found or already deleted."


def delete_buttons(transaction_id: int) -> list[ReplyButton]:
    return [
        ReplyButton(id=f"{CONFIRM_DELETE_PREFIX}{transaction_id}", title="Delete"),
        ReplyButton(id=f"{CANCEL_DELETE_PREFIX}{transaction_id}", title="Cancel"),
    ]


class ConfirmationProcessor(MessageProcessor):
    def __init__(self, ledger: TransactionLedger, messenger: Messenger):
        super().__init__(messenger)
        self.ledger = ledger

    def can_handle(self, context: ProcessContext) -> bool:
        message = context.message
        return isinstance(message, ButtonReply) and message.button_id.startswith(
            (CONFIRM_DELETE_PREFIX, CANCEL_DELETE_PREFIX)
        )

    async def process(self, context: ProcessContext) -> ProcessOutput:
        button_id = context.message.button_id

        if button_id.startswith(CANCEL_DELETE_PREFIX):
            response = "❌ Deletion cancelled."
            await self.reply(context, response)
            return ProcessOutput(
                response, ParsedIntent(intent=Intent.UNDO, notes="Cancelled delete")
            )

        transaction = await self._find_owned(
            button_id.removeprefix(CONFIRM_DELETE_PREFIX), context.user.id
        )
        if transaction is None:
            response = NOT_FOUND
            await self.reply(context, response)
            return ProcessOutput(
                response, ParsedIntent(intent=Intent.UNDO, notes="Transaction not found")
            )

        await self.ledger.delete(transaction.id, deleted_by=context.user.id)

        response = (
            "🗑️ *Entry Deleted*\n\n"
            f"Removed: {format_amount(transaction.amount)} ({transaction.intent})\n"
            f"Note: {transaction.description or transaction.category}"
        )
        await self.reply(context, response)
        return ProcessOutput(
            response,
            ParsedIntent(intent=Intent.UNDO, notes="Confirmed delete"),
            transaction_id=transaction.id,
        )

    async def _find_owned(self, raw_id: str, user_id: int) -> Optional[Transaction]:
        """Live transaction of this user, or None."""
        if not raw_id.isdigit():
            return None
        transaction = await self.ledger.find_by_id(int(raw_id))
        if transaction is None or transaction.is_deleted or transaction.user_id != user_id:
            return None
        return transaction
