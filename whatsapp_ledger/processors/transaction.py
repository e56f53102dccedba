"""
Records CREDIT and DEBIT entries.
"""

import logging

from ..errors import IntentValidationError
from ..ledger import ContactResolver, TransactionLedger
from ..models import TRANSACTION_INTENTS
from .base import (
    MessageProcessor,
    Messenger,
    ProcessContext,
    ProcessOutput,
    balance_status,
    format_amount,
)

logger = logging.getLogger(__name__)


class TransactionProcessor(MessageProcessor):
    def __init__(
        self,
        ledger: TransactionLedger,
        contacts: ContactResolver,
        messenger: Messenger,
    ):
        super().__init__(messenger)
        self.ledger = ledger
        self.contacts = contacts

    def can_handle(self, context: ProcessContext) -> bool:
        return (
            context.parsed is not None
            and context.parsed.intent in TRANSACTION_INTENTS
        )

    async def process(self, context: ProcessContext) -> ProcessOutput:
        parsed = context.parsed
        if not parsed.amount or parsed.amount <= 0:
            raise IntentValidationError("Amount is required for CREDIT or DEBIT intents")

        contact = None
        if parsed.name and parsed.name.strip().lower() != "unknown":
            contact = await self.contacts.resolve(context.user.id, parsed.name)

        transaction = await self.ledger.create(
            user_id=context.user.id,
            amount=parsed.amount,
            intent=parsed.intent,
            category=parsed.category,
            description=parsed.description or parsed.category,
            contact_id=contact.id if contact else None,
        )

        arrow = "➡️ Gave" if transaction.intent == "CREDIT" else "⬅️ Received"
        lines = [
            "✅ *Entry Added*",
            "",
            f"{arrow} {format_amount(transaction.amount)}"
            + (f" ({contact.name})" if contact else ""),
            f"Category: {transaction.category}",
        ]
        if contact is not None:
            lines.append(
                f"Balance: {format_amount(abs(contact.current_balance))} "
                f"{balance_status(contact.current_balance)}"
            )
        lines += ["", "Reply 'delete' or 'update category to X' to edit."]
        response = "\n".join(lines)

        message_id = await self.reply(context, response)
        if message_id:
            await self.ledger.update_confirmation_message_id(transaction.id, message_id)
        else:
            logger.warning(
                "No outbound message id for transaction %s; replies to it "
                "cannot be linked",
                transaction.id,
            )

        return ProcessOutput(response, parsed, transaction_id=transaction.id)
