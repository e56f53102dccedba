"""
Conversation orchestration: one webhook message in, one reply out.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from .clients.whatsapp import extension_for
from .db.models import Transaction
from .errors import DuplicateMessageError, InvalidPayloadError, UnsupportedIntentError
from .ledger import ContactResolver, MessageDeduplicator, TransactionLedger, UserDirectory
from .llm import IntentClassifier
from .models import (
    ButtonReply,
    InboundMessage,
    Intent,
    ParsedIntent,
    TextMessage,
    Transcription,
    WebhookPayload,
    WebhookResult,
)
from .processors import Messenger, ProcessContext, ProcessOutput, ProcessorRouter, build_router

logger = logging.getLogger(__name__)

SUPPORTED_MESSAGE_TYPES = ("text", "audio", "interactive")

DEFAULT_QUICK_REPLIES: Mapping[str, str] = MappingProxyType(
    {"ping": "pong", "hello": "Hi there! 👋"}
)

EMPTY_TRANSCRIPT_RESPONSE = "🎙️ Sorry, I couldn't make out that voice note. Could you try again?"


class MediaSource(Protocol):
    async def download_media_by_id(self, media_id: str) -> tuple[bytes, dict]: ...


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes, filename: str = "audio.ogg") -> Transcription: ...


def freeze_quick_replies(replies: Mapping[str, str]) -> Mapping[str, str]:
    """Read-only keyword table, keys normalised to trimmed lowercase."""
    return MappingProxyType({k.strip().lower(): v for k, v in replies.items()})


def describe_transaction(transaction: Transaction) -> dict:
    """Context handed to the classifier when a message replies to an entry"""
    return {
        "id": transaction.id,
        "amount": str(transaction.amount),
        "intent": transaction.intent,
        "category": transaction.category,
        "description": transaction.description,
        "date": transaction.date.isoformat(),
    }


class ConversationOrchestrator:
    """
    Runs the per-message pipeline.

    Webhook level: type filter, duplicate suppression, field validation and
    voice transcription. Message level: lazy user creation, reply
    correlation, quick replies, then routing before and after
    classification.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        ledger: TransactionLedger,
        deduplicator: MessageDeduplicator,
        classifier: IntentClassifier,
        router: ProcessorRouter,
        messenger: Messenger,
        media: Optional[MediaSource] = None,
        transcriber: Optional[Transcriber] = None,
        quick_replies: Mapping[str, str] = DEFAULT_QUICK_REPLIES,
    ):
        self.users = users
        self.ledger = ledger
        self.deduplicator = deduplicator
        self.classifier = classifier
        self.router = router
        self.messenger = messenger
        self.media = media
        self.transcriber = transcriber
        self.quick_replies = quick_replies

    async def handle_webhook(self, payload: WebhookPayload) -> WebhookResult:
        message = payload.first_message()
        if message is None:
            logger.info("Webhook carried no message (status update?)")
            return WebhookResult(success=True, message="No actionable message")

        if message.type not in SUPPORTED_MESSAGE_TYPES:
            logger.info("Ignoring unsupported message type %s", message.type)
            return WebhookResult(success=True, message="Unsupported message type")

        if message.id:
            if await self.deduplicator.has_been_processed(message.id):
                logger.info("Skipping already processed message %s", message.id)
                return WebhookResult(success=True, message="Message already processed")
            try:
                await self.deduplicator.mark_processed(message.id)
            except DuplicateMessageError:
                logger.info("Message %s claimed by a concurrent delivery", message.id)
                return WebhookResult(success=True, message="Message already processed")

        sender = message.from_
        if not sender:
            raise InvalidPayloadError("Invalid message payload: missing sender")

        sender_name = payload.sender_name()
        reply_to = message.reply_to_message_id

        if message.type == "text":
            body = message.text.body if message.text else None
            if not body:
                raise InvalidPayloadError("Invalid message payload: missing text body")
            await self._show_typing(message.id)
            output = await self.process(TextMessage(sender, body, sender_name, reply_to))
            return WebhookResult(
                success=True,
                message="Message processed",
                data={"response": output.response, "intent": output.parsed.intent.value},
            )

        if message.type == "audio":
            media_id = message.audio.id if message.audio else None
            if not media_id:
                raise InvalidPayloadError("Invalid message payload: missing audio id")
            await self._show_typing(message.id)
            transcript, output = await self.process_voice(
                sender, media_id, sender_name, reply_to
            )
            return WebhookResult(
                success=True,
                message="Voice message processed",
                data={"transcribed_text": transcript, "response": output.response},
            )

        button = message.interactive.button_reply if message.interactive else None
        if button is None or not button.id:
            raise InvalidPayloadError("Invalid message payload: missing button reply")
        await self._mark_read(message.id)
        output = await self.process(
            ButtonReply(sender, button.id, button.title, sender_name, reply_to)
        )
        return WebhookResult(
            success=True,
            message="Interactive message processed",
            data={"response": output.response, "intent": output.parsed.intent.value},
        )

    async def process_voice(
        self,
        sender: str,
        media_id: str,
        sender_name: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> tuple[str, ProcessOutput]:
        """Download, transcribe and run the transcript through the text pipeline."""
        if self.media is None or self.transcriber is None:
            raise InvalidPayloadError("Voice messages are not supported")

        audio, metadata = await self.media.download_media_by_id(media_id)
        filename = f"audio_{media_id}.{extension_for(metadata.get('mime_type'))}"
        transcription = await self.transcriber.transcribe(audio, filename)
        text = transcription.text.strip()
        logger.info(
            "Transcribed voice note %s (%s): %r", media_id, transcription.language, text
        )

        if not text:
            await self.messenger.send_message(sender, EMPTY_TRANSCRIPT_RESPONSE)
            return text, ProcessOutput(
                EMPTY_TRANSCRIPT_RESPONSE,
                ParsedIntent(intent=Intent.CHAT, notes="Empty transcription"),
            )

        output = await self.process(TextMessage(sender, text, sender_name, reply_to))
        return text, output

    async def process(self, message: InboundMessage) -> ProcessOutput:
        """Produce exactly one outbound reply for a validated message."""
        user = await self.users.ensure_exists(message.sender_phone, message.sender_name)
        reply_transaction = await self._find_reply_transaction(message, user.id)

        if isinstance(message, TextMessage):
            quick = self.quick_replies.get(message.body.strip().lower())
            if quick is not None:
                await self.messenger.send_message(user.phone_number, quick)
                return ProcessOutput(
                    quick,
                    ParsedIntent(
                        intent=Intent.QUICK_REPLY,
                        notes=f"Quick reply for keyword: {message.body.strip()}",
                    ),
                )

        context = ProcessContext(
            user=user, message=message, reply_transaction=reply_transaction
        )
        output = await self.router.dispatch(context)
        if output is not None:
            return output

        context.parsed = await self.classifier.classify(
            message.text,
            describe_transaction(reply_transaction) if reply_transaction else None,
        )
        output = await self.router.dispatch(context)
        if output is None:
            raise UnsupportedIntentError(
                f"Unsupported intent: {context.parsed.intent.value}"
            )
        return output

    async def _find_reply_transaction(
        self, message: InboundMessage, user_id: int
    ) -> Optional[Transaction]:
        if not message.reply_to_message_id:
            return None
        transaction = await self.ledger.find_by_confirmation_id(
            message.reply_to_message_id
        )
        if transaction is None or transaction.user_id != user_id:
            return None
        return transaction

    async def _show_typing(self, message_id: Optional[str]) -> None:
        if not message_id:
            return
        try:
            await self.messenger.send_typing_indicator(message_id)
        except Exception:
            logger.warning("Typing indicator failed for %s", message_id, exc_info=True)

    async def _mark_read(self, message_id: Optional[str]) -> None:
        if not message_id:
            return
        try:
            await self.messenger.mark_as_read(message_id)
        except Exception:
            logger.warning("Read receipt failed for %s", message_id, exc_info=True)


def build_orchestrator(
    session: AsyncSession,
    *,
    classifier: IntentClassifier,
    messenger: Messenger,
    media: Optional[MediaSource] = None,
    transcriber: Optional[Transcriber] = None,
    quick_replies: Mapping[str, str] = DEFAULT_QUICK_REPLIES,
) -> ConversationOrchestrator:
    """Wire the repositories for one database session."""
    ledger = TransactionLedger(session)
    contacts = ContactResolver(session)
    return ConversationOrchestrator(
        users=UserDirectory(session),
        ledger=ledger,
        deduplicator=MessageDeduplicator(session),
        classifier=classifier,
        router=build_router(ledger, contacts, messenger),
        messenger=messenger,
        media=media,
        transcriber=transcriber,
        quick_replies=quick_replies,
    )
