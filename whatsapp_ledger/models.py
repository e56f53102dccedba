"""
Pydantic models for webhook payloads, classification results and responses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Inbound webhook payload (WhatsApp Cloud API) ---


class TextBody(BaseModel):
    body: Optional[str] = None


class AudioBody(BaseModel):
    id: Optional[str] = None
    mime_type: Optional[str] = None


class ButtonReplyBody(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None


class InteractiveBody(BaseModel):
    type: Optional[str] = None
    button_reply: Optional[ButtonReplyBody] = None


class MessageContext(BaseModel):
    """The message being replied to, if any"""

    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    id: Optional[str] = None


class WebhookMessage(BaseModel):
    """A single message from the webhook payload"""

    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    id: Optional[str] = None
    type: Optional[str] = None
    text: Optional[TextBody] = None
    audio: Optional[AudioBody] = None
    interactive: Optional[InteractiveBody] = None
    context: Optional[MessageContext] = None

    @property
    def reply_to_message_id(self) -> Optional[str]:
        return self.context.id if self.context else None


class ContactProfile(BaseModel):
    name: Optional[str] = None


class WebhookContact(BaseModel):
    profile: Optional[ContactProfile] = None
    wa_id: Optional[str] = None


class ChangeValue(BaseModel):
    contacts: list[WebhookContact] = Field(default_factory=list)
    messages: list[WebhookMessage] = Field(default_factory=list)


class Change(BaseModel):
    value: Optional[ChangeValue] = None


class Entry(BaseModel):
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    """Incoming webhook call; only the first message of the first change is used"""

    entry: list[Entry] = Field(default_factory=list)

    def _first_value(self) -> Optional[ChangeValue]:
        if not self.entry or not self.entry[0].changes:
            return None
        return self.entry[0].changes[0].value

    def first_message(self) -> Optional[WebhookMessage]:
        value = self._first_value()
        if value is None or not value.messages:
            return None
        return value.messages[0]

    def sender_name(self) -> Optional[str]:
        value = self._first_value()
        if value is None or not value.contacts:
            return None
        profile = value.contacts[0].profile
        return profile.name if profile else None


# --- Normalized inbound messages ---


@dataclass(frozen=True)
class TextMessage:
    """Free text, typed or transcribed from a voice note"""

    sender_phone: str
    body: str
    sender_name: Optional[str] = None
    reply_to_message_id: Optional[str] = None

    @property
    def text(self) -> str:
        return self.body


@dataclass(frozen=True)
class ButtonReply:
    """A tap on an interactive reply button"""

    sender_phone: str
    button_id: str
    title: Optional[str] = None
    sender_name: Optional[str] = None
    reply_to_message_id: Optional[str] = None

    @property
    def text(self) -> str:
        return self.title or self.button_id


InboundMessage = Union[TextMessage, ButtonReply]


# --- Classification ---


class Intent(str, Enum):
    CREDIT = "CREDIT"  # value left the user
    DEBIT = "DEBIT"  # value arrived to the user
    BALANCE = "BALANCE"
    UNDO = "UNDO"
    UPDATE_TRANSACTION = "UPDATE_TRANSACTION"
    VIEW_DAILY_SUMMARY = "VIEW_DAILY_SUMMARY"
    CHAT = "CHAT"
    QUERY = "QUERY"
    START = "START"
    QUICK_REPLY = "QUICK_REPLY"


TRANSACTION_INTENTS = (Intent.CREDIT, Intent.DEBIT)


class UpdatedFields(BaseModel):
    """Fields to change on an existing transaction"""

    amount: Optional[float] = Field(default=None, description="New amount if updated")
    category: Optional[str] = Field(default=None, description="New category if updated")
    description: Optional[str] = Field(
        default=None, description="New description if updated"
    )
    name: Optional[str] = Field(default=None, description="New name if updated")

    def is_empty(self) -> bool:
        return not any(
            value is not None
            for value in (self.amount, self.category, self.description, self.name)
        )


class QueryDetails(BaseModel):
    """Analytics question details for the QUERY intent"""

    type: Optional[
        Literal["TOTAL_SPEND", "TOTAL_INCOME", "NET_BALANCE", "TRANSACTION_HISTORY"]
    ] = None
    period: Optional[Literal["TODAY", "THIS_WEEK", "THIS_MONTH", "ALL_TIME"]] = None
    category: Optional[str] = None


class ParsedIntent(BaseModel):
    """Structured result of classifying one chat message"""

    intent: Intent = Field(
        description="CREDIT if the user GAVE/SPENT money, DEBIT if the user "
        "RECEIVED/EARNED money, BALANCE for status inquiries, UNDO to delete the "
        "last entry, VIEW_DAILY_SUMMARY for today's entries, UPDATE_TRANSACTION to "
        "modify a previous transaction, CHAT for conversation, QUERY for analytics"
    )
    amount: Optional[float] = Field(
        default=None, description="Numeric amount involved, 0 if none is mentioned"
    )
    name: Optional[str] = Field(
        default=None, description="Person, shop or entity involved, 'Unknown' if none"
    )
    category: Optional[str] = Field(
        default=None, description="Inferred category (Food, Travel, Loan...), 'General' if unclear"
    )
    description: Optional[str] = Field(
        default=None, description="What happened, e.g. 'Taxi to airport'"
    )
    currency: Optional[str] = Field(default=None, description="Currency code, default INR")
    notes: Optional[str] = None
    updated_fields: Optional[UpdatedFields] = Field(
        default=None, description="Fields to update if intent is UPDATE_TRANSACTION"
    )
    conversational_response: Optional[str] = Field(
        default=None, description="Reply to send if intent is CHAT"
    )
    query_details: Optional[QueryDetails] = Field(
        default=None, description="Question details if intent is QUERY"
    )


def degraded_intent() -> ParsedIntent:
    """Neutral result used when every classifier backend failed"""
    return ParsedIntent(
        intent=Intent.BALANCE,
        amount=0,
        name="Unknown",
        category="Error",
        currency="INR",
    )


# --- Outbound ---


class ReplyButton(BaseModel):
    """Interactive reply button; ``id`` comes back verbatim when tapped"""

    id: str
    title: str


class Transcription(BaseModel):
    text: str
    language: Optional[str] = None


# --- Responses ---


class WebhookResult(BaseModel):
    """Result of handling one webhook call"""

    success: bool
    message: str
    data: Optional[dict] = None
