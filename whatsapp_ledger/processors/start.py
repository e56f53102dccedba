from ..models import Intent, ParsedIntent
from .base import MessageProcessor, ProcessContext, ProcessOutput


class StartProcessor(MessageProcessor):
    """Onboarding message for the literal keyword "start"."""

    def can_handle(self, context: ProcessContext) -> bool:
        return context.text.strip().lower() == "start"

    async def process(self, context: ProcessContext) -> ProcessOutput:
        name = context.user.name or "there"
        response = (
            f"👋 Hey {name}! Welcome to your WhatsApp ledger. "
            "Tell me things like 'Gave 500 to Raju' or ask 'Balance for Raju' "
            "to keep track of who owes what."
        )
        await self.reply(context, response)
        return ProcessOutput(
            response, ParsedIntent(intent=Intent.START, notes="User initiated onboarding")
        )
