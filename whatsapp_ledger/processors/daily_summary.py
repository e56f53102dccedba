from datetime import datetime

from ..ledger import TransactionLedger
from ..models import Intent
from .base import MessageProcessor, Messenger, ProcessContext, ProcessOutput, format_amount


class DailySummaryProcessor(MessageProcessor):
    def __init__(self, ledger: TransactionLedger, messenger: Messenger):
        super().__init__(messenger)
        self.ledger = ledger

    def can_handle(self, context: ProcessContext) -> bool:
        return (
            context.parsed is not None
            and context.parsed.intent == Intent.VIEW_DAILY_SUMMARY
        )

    async def process(self, context: ProcessContext) -> ProcessOutput:
        summary = await self.ledger.get_daily_summary(context.user.id, datetime.now())

        if not summary.transactions:
            response = "📅 No entries today yet."
        else:
            lines = [f"📅 *Today's Summary* ({len(summary.transactions)} entries)", ""]
            for tx in summary.transactions:
                lines.append(
                    f"- {tx.date:%H:%M} {tx.intent} {format_amount(tx.amount)} "
                    f"({tx.description or tx.category})"
                )
            lines += ["", f"Total spent: {format_amount(summary.total_spend)}"]
            for category, amount in sorted(summary.category_breakdown.items()):
                lines.append(f"  {category}: {format_amount(amount)}")
            response = "\n".join(lines)

        await self.reply(context, response)
        return ProcessOutput(response, context.parsed)
