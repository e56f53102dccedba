"""
Aggregate questions such as "how much did I spend on food this month?".
"""

from datetime import datetime, timedelta
from typing import Optional

from ..ledger import TransactionLedger
from ..models import Intent, QueryDetails
from .base import (
    MessageProcessor,
    Messenger,
    ProcessContext,
    ProcessOutput,
    balance_status,
    format_amount,
)

PERIOD_LABELS = {
    "TODAY": "today",
    "THIS_WEEK": "this week",
    "THIS_MONTH": "this month",
    "ALL_TIME": "in total",
}

UNSUPPORTED_QUERY_RESPONSE = (
    "I can answer totals like 'How much did I spend on food this month?' "
    "or 'What's my net balance?'. For today's entries, ask for today's summary."
)


def period_start(period: Optional[str], now: datetime) -> Optional[datetime]:
    """Inclusive lower bound for a reporting period, None for all time."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "TODAY":
        return midnight
    if period == "THIS_WEEK":
        return midnight - timedelta(days=midnight.weekday())
    if period == "THIS_MONTH":
        return midnight.replace(day=1)
    return None


class QueryProcessor(MessageProcessor):
    def __init__(self, ledger: TransactionLedger, messenger: Messenger):
        super().__init__(messenger)
        self.ledger = ledger

    def can_handle(self, context: ProcessContext) -> bool:
        return context.parsed is not None and context.parsed.intent == Intent.QUERY

    async def process(self, context: ProcessContext) -> ProcessOutput:
        details = context.parsed.query_details or QueryDetails()
        user_id = context.user.id

        if details.type in ("TOTAL_SPEND", "TOTAL_INCOME"):
            spend = details.type == "TOTAL_SPEND"
            total = await self.ledger.sum_amounts(
                user_id,
                Intent.CREDIT if spend else Intent.DEBIT,
                since=period_start(details.period, datetime.now()),
                category=details.category,
            )
            scope = ""
            if details.category:
                scope = f" {'on' if spend else 'for'} {details.category}"
            response = (
                f"{'💸' if spend else '💰'} You {'spent' if spend else 'received'} "
                f"{format_amount(total)}{scope} "
                f"{PERIOD_LABELS.get(details.period or 'ALL_TIME')}."
            )
        elif details.type == "NET_BALANCE":
            gave = await self.ledger.sum_amounts(user_id, Intent.CREDIT)
            received = await self.ledger.sum_amounts(user_id, Intent.DEBIT)
            net = gave - received
            response = (
                f"📊 Gave {format_amount(gave)}, received {format_amount(received)}.\n"
                f"Net: {format_amount(abs(net))} {balance_status(net)}"
            )
        else:
            response = UNSUPPORTED_QUERY_RESPONSE

        await self.reply(context, response)
        return ProcessOutput(response, context.parsed)
