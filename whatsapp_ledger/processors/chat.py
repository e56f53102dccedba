from ..models import Intent
from .base import MessageProcessor, ProcessContext, ProcessOutput

DEFAULT_CHAT_RESPONSE = (
    "🙂 I'm your ledger assistant. Tell me about money you gave or received, "
    "or ask for a balance."
)


class ChatProcessor(MessageProcessor):
    def can_handle(self, context: ProcessContext) -> bool:
        return context.parsed is not None and context.parsed.intent == Intent.CHAT

    async def process(self, context: ProcessContext) -> ProcessOutput:
        response = context.parsed.conversational_response or DEFAULT_CHAT_RESPONSE
        await self.reply(context, response)
        return ProcessOutput(response, context.parsed)
