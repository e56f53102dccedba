"""
Transaction ledger with derived contact balances.

A contact's cached ``current_balance`` always equals the sum of its
non-deleted CREDIT amounts minus the sum of its non-deleted DEBIT amounts.
It is recomputed from scratch after every create/update/delete touching a
contact-linked transaction, inside the same commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import Contact, Transaction
from ..errors import IntentValidationError
from ..models import Intent

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_amount(value: Union[float, int, str, Decimal]) -> Decimal:
    """Convert a parsed amount to a positive two-decimal Decimal."""
    amount = Decimal(str(value)).quantize(CENTS)
    if amount <= 0:
        raise IntentValidationError(f"Amount must be positive, got {value}")
    return amount


def total_balance(transactions: Iterable[Transaction]) -> Decimal:
    """CREDIT (user gave) adds, DEBIT (user received) subtracts."""
    balance = Decimal("0")
    for tx in transactions:
        if tx.intent == Intent.CREDIT.value:
            balance += tx.amount
        elif tx.intent == Intent.DEBIT.value:
            balance -= tx.amount
    return balance


def day_bounds(day: Union[date, datetime]) -> tuple[datetime, datetime]:
    """First and last instant of the calendar day, in local time."""
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


@dataclass
class DailySummary:
    transactions: list[Transaction]
    total_spend: Decimal = Decimal("0")
    category_breakdown: dict[str, Decimal] = field(default_factory=dict)


def _newest_first(stmt):
    return stmt.order_by(Transaction.date.desc(), Transaction.id.desc())


class TransactionLedger:
    """CRUD for ledger entries plus balance maintenance"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        amount: Union[float, Decimal],
        intent: Intent,
        category: Optional[str] = None,
        description: Optional[str] = None,
        contact_id: Optional[int] = None,
    ) -> Transaction:
        if intent not in (Intent.CREDIT, Intent.DEBIT):
            raise IntentValidationError(f"Cannot record a {intent} transaction")

        transaction = Transaction(
            user_id=user_id,
            contact_id=contact_id,
            amount=to_amount(amount),
            intent=Intent(intent).value,
            category=category or "General",
            description=description,
        )
        self.session.add(transaction)
        await self.session.flush()

        if contact_id is not None:
            await self._recompute_balance(contact_id)
        await self.session.commit()

        logger.info(
            "Recorded %s of %s for user %s (transaction %s)",
            transaction.intent,
            transaction.amount,
            user_id,
            transaction.id,
        )
        return transaction

    async def update(
        self,
        transaction_id: int,
        *,
        amount: Optional[Union[float, Decimal]] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Transaction]:
        """Apply only the provided fields. Returns None if the id is unknown."""
        transaction = await self.find_by_id(transaction_id)
        if transaction is None:
            return None

        if amount is not None:
            transaction.amount = to_amount(amount)
        if category:
            transaction.category = category
        if description:
            transaction.description = description
        await self.session.flush()

        if transaction.contact_id is not None:
            await self._recompute_balance(transaction.contact_id)
        await self.session.commit()

        logger.info("Updated transaction %s", transaction_id)
        return transaction

    async def delete(
        self, transaction_id: int, deleted_by: Optional[int] = None
    ) -> Optional[Transaction]:
        """Soft delete. Returns None if the id is unknown."""
        transaction = await self.find_by_id(transaction_id)
        if transaction is None:
            return None
        await self._soft_delete(transaction, deleted_by)
        return transaction

    async def delete_last_transaction(self, user_id: int) -> Optional[Transaction]:
        """Soft delete the user's most recent non-deleted transaction."""
        transaction = await self.find_last_by_user(user_id)
        if transaction is None:
            return None
        await self._soft_delete(transaction, deleted_by=user_id)
        return transaction

    async def _soft_delete(
        self, transaction: Transaction, deleted_by: Optional[int]
    ) -> None:
        transaction.is_deleted = True
        transaction.deleted_at = datetime.now()
        if deleted_by is not None:
            transaction.deleted_by_user_id = deleted_by
        await self.session.flush()

        if transaction.contact_id is not None:
            await self._recompute_balance(transaction.contact_id)
        await self.session.commit()

        logger.info("Soft-deleted transaction %s", transaction.id)

    async def find_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Lookup by id, including soft-deleted entries."""
        return await self.session.get(Transaction, transaction_id)

    async def find_by_user(self, user_id: int) -> list[Transaction]:
        stmt = _newest_first(
            select(Transaction).where(
                Transaction.user_id == user_id, Transaction.is_deleted.is_(False)
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_contact(self, contact_id: int) -> list[Transaction]:
        stmt = _newest_first(
            select(Transaction).where(
                Transaction.contact_id == contact_id,
                Transaction.is_deleted.is_(False),
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_last_by_user(self, user_id: int) -> Optional[Transaction]:
        stmt = _newest_first(
            select(Transaction).where(
                Transaction.user_id == user_id, Transaction.is_deleted.is_(False)
            )
        ).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_three_transactions(
        self, *, user_id: Optional[int] = None, contact_id: Optional[int] = None
    ) -> list[Transaction]:
        """Newest three non-deleted transactions matching the filter."""
        stmt = select(Transaction).where(Transaction.is_deleted.is_(False))
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        if contact_id is not None:
            stmt = stmt.where(Transaction.contact_id == contact_id)
        result = await self.session.execute(_newest_first(stmt).limit(3))
        return list(result.scalars().all())

    async def find_by_confirmation_id(self, message_id: str) -> Optional[Transaction]:
        """
        The transaction announced by an outbound message, deleted or not.

        Deleted entries are returned so a late reply to their confirmation
        can be told apart from a reply to an unknown message.
        """
        result = await self.session.execute(
            select(Transaction).where(Transaction.confirmation_message_id == message_id)
        )
        return result.scalar_one_or_none()

    async def update_confirmation_message_id(
        self, transaction_id: int, message_id: str
    ) -> None:
        transaction = await self.find_by_id(transaction_id)
        if transaction is None:
            return
        transaction.confirmation_message_id = message_id
        await self.session.commit()

    async def get_daily_summary(
        self, user_id: int, day: Union[date, datetime]
    ) -> DailySummary:
        """
        Today's entries plus spend totals.

        Only CREDIT transactions (money the user gave or spent) count towards
        ``total_spend`` and the category breakdown.
        """
        start, end = day_bounds(day)
        stmt = _newest_first(
            select(Transaction).where(
                Transaction.user_id == user_id,
                Transaction.is_deleted.is_(False),
                Transaction.date >= start,
                Transaction.date <= end,
            )
        )
        result = await self.session.execute(stmt)
        summary = DailySummary(transactions=list(result.scalars().all()))

        for tx in summary.transactions:
            if tx.intent != Intent.CREDIT.value:
                continue
            category = tx.category or "General"
            summary.total_spend += tx.amount
            summary.category_breakdown[category] = (
                summary.category_breakdown.get(category, Decimal("0")) + tx.amount
            )

        return summary

    async def sum_amounts(
        self,
        user_id: int,
        intent: Intent,
        since: Optional[datetime] = None,
        category: Optional[str] = None,
    ) -> Decimal:
        """Sum of non-deleted amounts of one intent, optionally bounded."""
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == user_id,
            Transaction.is_deleted.is_(False),
            Transaction.intent == Intent(intent).value,
        )
        if since is not None:
            stmt = stmt.where(Transaction.date >= since)
        if category:
            stmt = stmt.where(func.lower(Transaction.category) == category.lower())
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar_one())).quantize(CENTS)

    async def _recompute_balance(self, contact_id: int) -> Decimal:
        """
        Full recompute of a contact's balance.

        The contact row stays locked until the caller commits, so concurrent
        recomputes for the same contact cannot interleave their read and write.
        """
        result = await self.session.execute(
            select(Contact).where(Contact.id == contact_id).with_for_update()
        )
        contact = result.scalar_one()
        contact.current_balance = total_balance(
            await self.find_by_contact(contact_id)
        )
        await self.session.flush()

        logger.info(
            "Balance for contact %s recomputed to %s", contact_id, contact.current_balance
        )
        return contact.current_balance
