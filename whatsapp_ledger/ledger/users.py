"""User lookup and lazy creation."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Users keyed by phone number. Users are never deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_phone(self, phone_number: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.phone_number == phone_number)
        )
        return result.scalar_one_or_none()

    async def create(self, phone_number: str, name: Optional[str] = None) -> User:
        user = User(phone_number=phone_number, name=name)
        self.session.add(user)
        await self.session.commit()
        logger.info("Created user %s for phone %s", user.id, phone_number)
        return user

    async def ensure_exists(self, phone_number: str, name: Optional[str] = None) -> User:
        """Return the user for this phone, creating it on first contact."""
        existing = await self.find_by_phone(phone_number)
        if existing:
            return existing

        try:
            return await self.create(phone_number, name)
        except IntegrityError:
            # A concurrent message from the same sender created it first
            await self.session.rollback()
            user = await self.find_by_phone(phone_number)
            if user is None:
                raise
            return user
