from decimal import Decimal

from ..db.models import Contact
from ..ledger import ContactResolver, TransactionLedger
from ..models import Intent
from .base import (
    MessageProcessor,
    Messenger,
    ProcessContext,
    ProcessOutput,
    balance_status,
    format_amount,
)


def _is_unnamed(name) -> bool:
    return not name or not name.strip() or name.strip().lower() == "unknown"


class BalanceProcessor(MessageProcessor):
    """
    Balance questions, either for one contact or across all of them.

    Read-only: asking about someone who was never recorded does not create
    a contact.
    """

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
        return context.parsed is not None and context.parsed.intent == Intent.BALANCE

    async def process(self, context: ProcessContext) -> ProcessOutput:
        parsed = context.parsed
        user_id = context.user.id

        if _is_unnamed(parsed.name):
            response = await self._overall_report(user_id)
        else:
            contact = await self.contacts.find_by_name(user_id, parsed.name)
            if contact is None:
                contact = await self.contacts.find_similar_by_name(user_id, parsed.name)

            if contact is None:
                response = f"You don't have any records with {parsed.name.strip()} yet."
            else:
                response = await self._contact_report(user_id, contact)

        await self.reply(context, response)
        return ProcessOutput(response, parsed)

    async def _contact_report(self, user_id: int, contact: Contact) -> str:
        recent = await self.ledger.find_three_transactions(
            user_id=user_id, contact_id=contact.id
        )
        lines = [
            f"📒 *Balance with {contact.name}*",
            "",
            f"{format_amount(abs(contact.current_balance))} "
            f"{balance_status(contact.current_balance)}",
        ]
        if recent:
            lines += ["", "Recent:"]
            for tx in recent:
                lines.append(
                    f"- {tx.date:%d %b}: {tx.intent} {format_amount(tx.amount)} "
                    f"({tx.description or tx.category})"
                )
        return "\n".join(lines)

    async def _overall_report(self, user_id: int) -> str:
        contacts = await self.contacts.find_all_by_user(user_id)
        if not contacts:
            return "📒 No entries yet. Try something like 'Gave 500 to Raju'."

        lines = ["📒 *Your Balances*", ""]
        net = Decimal("0")
        for contact in contacts:
            net += contact.current_balance
            if contact.current_balance != 0:
                lines.append(
                    f"- {contact.name}: {format_amount(abs(contact.current_balance))} "
                    f"{balance_status(contact.current_balance)}"
                )
        if len(lines) == 2:
            lines.append("All settled up ✨")
        lines += ["", f"Net: {format_amount(abs(net))} {balance_status(net)}"]
        return "\n".join(lines)
