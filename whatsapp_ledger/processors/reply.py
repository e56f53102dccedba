"""
Edits driven by replying to one of our own confirmation messages.

Runs twice per message: before classification it only claims explicit
delete phrasing and the "update category to X" shortcut on a replied-to
transaction. After classification it claims UPDATE_TRANSACTION, and UNDO
when the message replies to one of our entries, so the delete stays scoped
to that entry and goes through the confirmation buttons.

A reply to an entry that has since been deleted never falls through to
another entry.
"""

import re
from typing import Optional

from ..db.models import Transaction
from ..ledger import TransactionLedger
from ..models import Intent, ParsedIntent, TextMessage
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput, format_amount
from .confirmation import NOT_FOUND, delete_buttons

DELETE_WORDS = ("delete", "remove", "undo")
EDITABLE_FIELDS_HINT = "✏️ I can only change the amount, category or note of an entry."
UPDATE_CATEGORY_PATTERN = re.compile(r"update category to", re.IGNORECASE)


def wants_delete(text: str) -> bool:
    lower = text.lower()
    return any(word in lower for word in DELETE_WORDS)


class ReplyProcessor(MessageProcessor):
    def __init__(self, ledger: TransactionLedger, messenger: Messenger):
        super().__init__(messenger)
        self.ledger = ledger

    def can_handle(self, context: ProcessContext) -> bool:
        if context.parsed is not None:
            if context.parsed.intent == Intent.UNDO:
                return context.reply_transaction is not None
            return context.parsed.intent == Intent.UPDATE_TRANSACTION

        if context.reply_transaction is None or not isinstance(
            context.message, TextMessage
        ):
            return False
        return wants_delete(context.text) or bool(
            UPDATE_CATEGORY_PATTERN.search(context.text)
        )

    async def process(self, context: ProcessContext) -> ProcessOutput:
        transaction = context.reply_transaction
        if transaction is not None and transaction.is_deleted:
            await self.reply(context, NOT_FOUND)
            return ProcessOutput(
                NOT_FOUND,
                context.parsed
                or ParsedIntent(intent=Intent.UNDO, notes="Transaction not found"),
            )

        if transaction is None:
            # Classified as an update without a reply: edit the latest entry
            transaction = await self.ledger.find_last_by_user(context.user.id)
        if transaction is None:
            response = "🤔 I couldn't find a recent transaction to update."
            await self.reply(context, response)
            return ProcessOutput(
                response,
                context.parsed or ParsedIntent(intent=Intent.UPDATE_TRANSACTION),
            )

        if context.parsed is None and wants_delete(context.text):
            return await self._ask_delete_confirmation(context, transaction)
        if context.parsed is not None and context.parsed.intent == Intent.UNDO:
            return await self._ask_delete_confirmation(context, transaction)

        updates = context.parsed.updated_fields if context.parsed else None
        if updates is not None and not updates.is_empty():
            if not (updates.amount or updates.category or updates.description):
                # the counterparty of an entry is fixed once recorded
                await self.reply(context, EDITABLE_FIELDS_HINT)
                return ProcessOutput(
                    EDITABLE_FIELDS_HINT, context.parsed, transaction_id=transaction.id
                )
            return await self._apply_updates(context, transaction)

        category = self._requested_category(context.text)
        if category:
            await self.ledger.update(transaction.id, category=category)
            response = f"✅ Category updated to *{category}*."
            await self.reply(context, response)
            return ProcessOutput(
                response,
                ParsedIntent(
                    intent=Intent.UPDATE_TRANSACTION,
                    category=category,
                    notes=f"Updated category to {category}",
                ),
                transaction_id=transaction.id,
            )

        response = (
            "❓ I see you replied to a transaction, but I didn't understand. "
            "Try 'delete' or 'update category to [name]'."
        )
        await self.reply(context, response)
        return ProcessOutput(
            response,
            context.parsed or ParsedIntent(intent=Intent.CHAT, notes="Unknown reply action"),
        )

    async def _ask_delete_confirmation(
        self, context: ProcessContext, transaction: Transaction
    ) -> ProcessOutput:
        response = (
            "⚠️ *Confirm Deletion*\n\n"
            f"Are you sure you want to delete this transaction?\n"
            f"{format_amount(transaction.amount)} - "
            f"{transaction.description or transaction.category}"
        )
        await self.messenger.send_interactive_message(
            context.user.phone_number, response, delete_buttons(transaction.id)
        )
        return ProcessOutput(
            response,
            ParsedIntent(intent=Intent.UNDO, notes="Delete confirmation requested"),
            transaction_id=transaction.id,
        )

    async def _apply_updates(
        self, context: ProcessContext, transaction: Transaction
    ) -> ProcessOutput:
        updates = context.parsed.updated_fields.model_copy()
        if updates.category and not updates.description:
            updates.description = updates.category

        updated = await self.ledger.update(
            transaction.id,
            amount=updates.amount or None,
            category=updates.category,
            description=updates.description,
        )

        lines = ["✅ *Transaction Updated*", ""]
        if updates.amount:
            lines.append(f"Amount: {format_amount(updated.amount)}")
        if updates.category:
            lines.append(f"Category: {updated.category}")
        if updates.description:
            lines.append(f"Note: {updated.description}")
        response = "\n".join(lines)

        await self.reply(context, response)
        return ProcessOutput(response, context.parsed, transaction_id=transaction.id)

    @staticmethod
    def _requested_category(text: str) -> Optional[str]:
        parts = UPDATE_CATEGORY_PATTERN.split(text, maxsplit=1)
        if len(parts) < 2:
            return None
        return parts[1].strip() or None
