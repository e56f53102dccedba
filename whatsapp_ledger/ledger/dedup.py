"""Idempotency guard keyed by the provider's message id."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import ProcessedMessage
from ..errors import DuplicateMessageError


class MessageDeduplicator:
    """
    Remembers which inbound message ids were handled.

    The marker is written (and committed) right after the check, before any
    processing happens. A crash mid-processing therefore drops the message
    instead of replaying it forever: at-most-once, not exactly-once.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def has_been_processed(self, message_id: str) -> bool:
        return await self.session.get(ProcessedMessage, message_id) is not None

    async def mark_processed(self, message_id: str) -> None:
        self.session.add(ProcessedMessage(message_id=message_id))
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateMessageError(
                f"Message {message_id} was marked by a concurrent delivery"
            )
