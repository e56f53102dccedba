"""
Contact lookup scoped to one user's contact book.

Names are matched case- and whitespace-insensitively. When no exact match
exists, a fuzzy lookup picks the closest existing name within a small edit
distance, so "Rajuu" or "raju " still land on "Raju".
"""

import logging
from typing import Optional

from rapidfuzz.distance import Levenshtein
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import Contact

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 2


def normalize_name(name: str) -> str:
    """Normalize a contact name for comparison"""
    return " ".join(name.split()).lower()


class ContactResolver:
    """Find and create contacts for a user"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all_by_user(self, user_id: int) -> list[Contact]:
        result = await self.session.execute(
            select(Contact).where(Contact.user_id == user_id).order_by(Contact.id)
        )
        return list(result.scalars().all())

    async def find_by_name(self, user_id: int, name: str) -> Optional[Contact]:
        """Exact match on the normalized name."""
        result = await self.session.execute(
            select(Contact).where(
                Contact.user_id == user_id,
                Contact.normalized_name == normalize_name(name),
            )
        )
        return result.scalar_one_or_none()

    async def find_similar_by_name(
        self,
        user_id: int,
        name: str,
        threshold: int = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> Optional[Contact]:
        """
        Fuzzy match against every contact of the user.

        An exact (case-insensitive) match wins immediately. Otherwise the
        contact with the smallest edit distance at or below ``threshold`` is
        returned; on ties the first one encountered is kept.

        Linear scan: fine for per-user contact books of a few hundred names.
        """
        target = normalize_name(name)
        best_match: Optional[Contact] = None
        min_distance = threshold + 1

        for contact in await self.find_all_by_user(user_id):
            candidate = normalize_name(contact.name)
            if candidate == target:
                return contact

            distance = Levenshtein.distance(target, candidate)
            if distance <= threshold and distance < min_distance:
                min_distance = distance
                best_match = contact

        return best_match

    async def create(self, user_id: int, name: str) -> Contact:
        display_name = " ".join(name.split())
        contact = Contact(
            user_id=user_id,
            name=display_name,
            normalized_name=normalize_name(display_name),
        )
        self.session.add(contact)
        try:
            await self.session.commit()
        except IntegrityError:
            # Created concurrently by another message for the same user
            await self.session.rollback()
            existing = await self.find_by_name(user_id, display_name)
            if existing is None:
                raise
            return existing

        logger.info("Created contact %s (%s) for user %s", contact.id, display_name, user_id)
        return contact

    async def resolve(self, user_id: int, name: str) -> Contact:
        """Exact match, then fuzzy match, then create."""
        contact = await self.find_by_name(user_id, name)
        if contact:
            return contact

        contact = await self.find_similar_by_name(user_id, name)
        if contact:
            logger.info("Matched '%s' to existing contact '%s'", name, contact.name)
            return contact

        return await self.create(user_id, name)
