"""End-to-end conversation flows through the orchestrator."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from payloads import SENDER, audio_payload, button_payload, status_payload, text_payload
from whatsapp_ledger.errors import IntentValidationError, InvalidPayloadError
from whatsapp_ledger.llm import IntentClassifier
from whatsapp_ledger.models import (
    Intent,
    ParsedIntent,
    Transcription,
    UpdatedFields,
    WebhookPayload,
)
from whatsapp_ledger.orchestrator import build_orchestrator, freeze_quick_replies

GAVE_RAJU = ParsedIntent(intent=Intent.CREDIT, amount=500, name="Raju", category="Loan")
GOT_FROM_RAJU = ParsedIntent(intent=Intent.DEBIT, amount=200, name="Raju", category="Loan")


def handle(orchestrator, body: dict):
    return orchestrator.handle_webhook(WebhookPayload.model_validate(body))


async def raju_of(users, contacts):
    user = await users.find_by_phone(SENDER)
    return user, await contacts.find_by_name(user.id, "Raju")


class TestLedgerConversation:
    async def test_first_credit_creates_user_contact_and_entry(
        self, orchestrator, backend, messenger, users, contacts, ledger
    ):
        backend.respond = GAVE_RAJU

        result = await handle(orchestrator, text_payload("Gave 500 to Raju"))

        user, raju = await raju_of(users, contacts)
        assert user.name == "Asha"
        assert raju.current_balance == Decimal("500.00")
        [tx] = await ledger.find_by_user(user.id)
        assert tx.intent == "CREDIT"
        assert tx.confirmation_message_id == messenger.last["id"]
        assert "owes you" in messenger.last["body"]
        assert result.data == {"response": messenger.last["body"], "intent": "CREDIT"}
        assert messenger.typing == ["wamid.in.1"]

    async def test_debit_reduces_balance(self, orchestrator, backend, users, contacts):
        backend.respond = GAVE_RAJU
        await handle(orchestrator, text_payload("Gave 500 to Raju", "wamid.in.1"))
        backend.respond = GOT_FROM_RAJU
        await handle(orchestrator, text_payload("Raju 200 thannu", "wamid.in.2"))

        _, raju = await raju_of(users, contacts)
        assert raju.current_balance == Decimal("300.00")

    async def test_reply_updates_category_without_classifying(
        self, orchestrator, backend, messenger, users, contacts, ledger
    ):
        backend.respond = GAVE_RAJU
        await handle(orchestrator, text_payload("Gave 500 to Raju", "wamid.in.1"))
        confirmation_id = messenger.last["id"]

        await handle(
            orchestrator,
            text_payload("update category to Food", "wamid.in.2", reply_to=confirmation_id),
        )

        user, raju = await raju_of(users, contacts)
        [tx] = await ledger.find_by_user(user.id)
        assert tx.category == "Food"
        assert raju.current_balance == Decimal("500.00")
        assert len(backend.calls) == 1

    async def test_reply_grounds_classifier_on_transaction(
        self, orchestrator, backend, messenger, users, contacts
    ):
        backend.respond = GAVE_RAJU
        await handle(orchestrator, text_payload("Gave 500 to Raju", "wamid.in.1"))
        confirmation_id = messenger.last["id"]

        backend.respond = ParsedIntent(
            intent=Intent.UPDATE_TRANSACTION, updated_fields=UpdatedFields(amount=600)
        )
        await handle(
            orchestrator,
            text_payload("actually 600", "wamid.in.2", reply_to=confirmation_id),
        )

        text, context = backend.calls[-1]
        assert text == "actually 600"
        assert context["amount"] == "500.00"
        assert context["intent"] == "CREDIT"
        _, raju = await raju_of(users, contacts)
        assert raju.current_balance == Decimal("600.00")


class TestTwoPhaseDelete:
    @pytest.fixture
    async def recorded(self, orchestrator, backend, messenger):
        backend.respond = GAVE_RAJU
        await handle(orchestrator, text_payload("Gave 500 to Raju", "wamid.in.1"))
        return messenger.last["id"]

    async def test_delete_reply_then_confirm(
        self, orchestrator, recorded, messenger, users, contacts, ledger
    ):
        await handle(
            orchestrator, text_payload("delete", "wamid.in.2", reply_to=recorded)
        )
        prompt = messenger.last
        confirm, cancel = prompt["buttons"]
        assert confirm.id.startswith("confirm_delete_")
        assert cancel.id.startswith("cancel_delete_")

        result = await handle(
            orchestrator,
            button_payload(confirm.id, confirm.title, "wamid.in.3", reply_to=prompt["id"]),
        )

        user, raju = await raju_of(users, contacts)
        assert await ledger.find_by_user(user.id) == []
        assert raju.current_balance == 0
        assert result.message == "Interactive message processed"
        assert messenger.read == ["wamid.in.3"]

    async def test_delete_reply_then_cancel(
        self, orchestrator, recorded, messenger, users, contacts, ledger
    ):
        await handle(
            orchestrator, text_payload("delete", "wamid.in.2", reply_to=recorded)
        )
        _, cancel = messenger.last["buttons"]

        await handle(orchestrator, button_payload(cancel.id, cancel.title, "wamid.in.3"))

        user, raju = await raju_of(users, contacts)
        assert len(await ledger.find_by_user(user.id)) == 1
        assert raju.current_balance == Decimal("500.00")
        assert messenger.last["body"] == "❌ Deletion cancelled."

    async def test_reply_to_deleted_entry_leaves_others_alone(
        self, orchestrator, recorded, backend, messenger, users, ledger
    ):
        backend.respond = ParsedIntent(intent=Intent.CREDIT, amount=80, name="Priya")
        await handle(orchestrator, text_payload("Gave 80 to Priya", "wamid.in.2"))
        await handle(
            orchestrator, text_payload("delete", "wamid.in.3", reply_to=recorded)
        )
        confirm, _ = messenger.last["buttons"]
        await handle(orchestrator, button_payload(confirm.id, confirm.title, "wamid.in.4"))
        backend.respond = ParsedIntent(intent=Intent.UNDO)

        await handle(
            orchestrator, text_payload("delete", "wamid.in.5", reply_to=recorded)
        )

        user = await users.find_by_phone(SENDER)
        [left] = await ledger.find_by_user(user.id)
        assert left.amount == Decimal("80.00")
        assert messenger.last["body"] == "⚠️ Transaction not found or already deleted."
        assert messenger.last["buttons"] is None

    async def test_classified_undo_on_reply_targets_that_entry(
        self, orchestrator, recorded, backend, messenger, users, ledger
    ):
        backend.respond = ParsedIntent(intent=Intent.CREDIT, amount=80, name="Priya")
        await handle(orchestrator, text_payload("Gave 80 to Priya", "wamid.in.2"))
        user = await users.find_by_phone(SENDER)
        raju_tx = await ledger.find_by_confirmation_id(recorded)
        backend.respond = ParsedIntent(intent=Intent.UNDO)

        await handle(
            orchestrator, text_payload("scrap this one", "wamid.in.3", reply_to=recorded)
        )

        confirm, _ = messenger.last["buttons"]
        assert confirm.id == f"confirm_delete_{raju_tx.id}"
        assert len(await ledger.find_by_user(user.id)) == 2

    async def test_typed_confirm_payload_is_ordinary_text(
        self, orchestrator, recorded, backend, users, ledger
    ):
        user = await users.find_by_phone(SENDER)
        [tx] = await ledger.find_by_user(user.id)
        backend.respond = ParsedIntent(intent=Intent.CHAT)

        await handle(
            orchestrator, text_payload(f"confirm_delete_{tx.id}", "wamid.in.2")
        )

        assert not tx.is_deleted
        assert backend.calls[-1][0] == f"confirm_delete_{tx.id}"


class TestDeliveryHandling:
    async def test_redelivery_is_a_no_op(self, orchestrator, backend, messenger, users, ledger):
        backend.respond = GAVE_RAJU
        payload = text_payload("Gave 500 to Raju", "wamid.in.1")

        await handle(orchestrator, payload)
        again = await handle(orchestrator, payload)

        user = await users.find_by_phone(SENDER)
        assert again.message == "Message already processed"
        assert len(await ledger.find_by_user(user.id)) == 1
        assert len(messenger.sent) == 1
        assert len(backend.calls) == 1

    async def test_degraded_classification_answers_with_balance(
        self, orchestrator, backend, messenger
    ):
        backend.error = RuntimeError("both providers down")

        result = await handle(orchestrator, text_payload("Gave 500 to Raju"))

        assert result.success is True
        assert result.data["intent"] == "BALANCE"
        assert messenger.last["body"].startswith("📒")

    async def test_quick_reply_skips_classifier(self, orchestrator, backend, messenger):
        result = await handle(orchestrator, text_payload("  PING "))

        assert messenger.last["body"] == "pong"
        assert result.data["intent"] == "QUICK_REPLY"
        assert backend.calls == []

    async def test_injected_quick_replies(self, session, messenger, backend):
        orchestrator = build_orchestrator(
            session,
            classifier=IntentClassifier([backend]),
            messenger=messenger,
            quick_replies=freeze_quick_replies({"Thanks": "Anytime 🙏"}),
        )

        await handle(orchestrator, text_payload("thanks"))

        assert messenger.last["body"] == "Anytime 🙏"

    async def test_status_updates_are_ignored(self, orchestrator, messenger):
        result = await handle(orchestrator, status_payload())

        assert result.message == "No actionable message"
        assert messenger.sent == []

    async def test_unsupported_type_is_ignored(self, orchestrator, messenger):
        payload = text_payload("ignored")
        message = payload["entry"][0]["changes"][0]["value"]["messages"][0]
        message["type"] = "image"
        del message["text"]

        result = await handle(orchestrator, payload)

        assert result.message == "Unsupported message type"
        assert messenger.sent == []

    async def test_missing_body_is_invalid(self, orchestrator):
        payload = text_payload("")
        with pytest.raises(InvalidPayloadError):
            await handle(orchestrator, payload)

    async def test_missing_amount_propagates(self, orchestrator, backend, messenger):
        backend.respond = ParsedIntent(intent=Intent.CREDIT, name="Raju")

        with pytest.raises(IntentValidationError):
            await handle(orchestrator, text_payload("gave Raju some money"))
        assert messenger.sent == []

    async def test_reply_to_someone_elses_entry_is_ignored(
        self, orchestrator, backend, messenger, users, ledger
    ):
        stranger = await users.ensure_exists("919800000099")
        theirs = await ledger.create(user_id=stranger.id, amount=10, intent=Intent.CREDIT)
        await ledger.update_confirmation_message_id(theirs.id, "wamid.out.theirs")
        backend.respond = ParsedIntent(intent=Intent.CHAT)

        await handle(
            orchestrator, text_payload("delete", reply_to="wamid.out.theirs")
        )

        assert backend.calls == [("delete", None)]
        assert messenger.last["buttons"] is None


class TestVoiceNotes:
    async def test_transcript_enters_text_pipeline(
        self, session, messenger, backend, users, contacts
    ):
        media = AsyncMock()
        media.download_media_by_id.return_value = (b"OggS...", {"mime_type": "audio/ogg"})
        transcriber = AsyncMock()
        transcriber.transcribe.return_value = Transcription(
            text="Gave 500 to Raju", language="hi-IN"
        )
        backend.respond = GAVE_RAJU
        orchestrator = build_orchestrator(
            session,
            classifier=IntentClassifier([backend]),
            messenger=messenger,
            media=media,
            transcriber=transcriber,
        )

        result = await handle(orchestrator, audio_payload("media-1"))

        transcriber.transcribe.assert_awaited_once_with(b"OggS...", "audio_media-1.ogg")
        assert result.data["transcribed_text"] == "Gave 500 to Raju"
        _, raju = await raju_of(users, contacts)
        assert raju.current_balance == Decimal("500.00")

    async def test_empty_transcript_gets_a_retry_hint(self, session, messenger, backend):
        media = AsyncMock()
        media.download_media_by_id.return_value = (b"...", {"mime_type": "audio/mpeg"})
        transcriber = AsyncMock()
        transcriber.transcribe.return_value = Transcription(text="  ")
        orchestrator = build_orchestrator(
            session,
            classifier=IntentClassifier([backend]),
            messenger=messenger,
            media=media,
            transcriber=transcriber,
        )

        await handle(orchestrator, audio_payload("media-2"))

        transcriber.transcribe.assert_awaited_once_with(b"...", "audio_media-2.mp3")
        assert "voice note" in messenger.last["body"]
        assert backend.calls == []
