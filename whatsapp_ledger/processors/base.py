"""
Processor contract shared by every intent handler.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from ..db.models import Transaction, User
from ..models import InboundMessage, ParsedIntent, ReplyButton


class Messenger(Protocol):
    """Outbound side of the messaging channel"""

    async def send_message(self, to: str, body: str) -> str: ...

    async def send_interactive_message(
        self, to: str, body: str, buttons: list[ReplyButton]
    ) -> str: ...

    async def mark_as_read(self, message_id: str) -> None: ...

    async def send_typing_indicator(self, message_id: str) -> None: ...


@dataclass
class ProcessContext:
    """Everything a processor may look at for one inbound message"""

    user: User
    message: InboundMessage
    parsed: Optional[ParsedIntent] = None
    reply_transaction: Optional[Transaction] = None

    @property
    def text(self) -> str:
        return self.message.text


@dataclass
class ProcessOutput:
    response: str
    parsed: ParsedIntent
    transaction_id: Optional[int] = None


class MessageProcessor(ABC):
    """Handles one kind of message; the router asks ``can_handle`` first"""

    def __init__(self, messenger: Messenger):
        self.messenger = messenger

    @abstractmethod
    def can_handle(self, context: ProcessContext) -> bool: ...

    @abstractmethod
    async def process(self, context: ProcessContext) -> ProcessOutput: ...

    async def reply(self, context: ProcessContext, body: str) -> str:
        """Send a text reply to the sender and return the outbound message id."""
        return await self.messenger.send_message(context.user.phone_number, body)


def format_amount(amount: Decimal | float) -> str:
    return f"₹{Decimal(str(amount)):,.2f}"


def balance_status(balance: Decimal) -> str:
    """Who owes whom, from the user's point of view"""
    if balance > 0:
        return "🟢 (owes you)"
    if balance < 0:
        return "🔴 (you owe)"
    return "⚪ (settled)"
