"""
Charge Bracket Resolver.

Responsible for finding the charge bracket that covers a transaction amount.
Brackets are fetched once per user, ordered by ascending start_amount, and
the first bracket whose inclusive range contains the amount wins.
"""

from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.exceptions import ChargeBracketNotFoundError, ChargeBracketOverlapError
from paygate.app.domain.billing.money import to_decimal
from paygate.app.models.charge_bracket import ChargeBracket
from paygate.app.models.user import User


class BracketResolver:

    @staticmethod
    def find_bracket(brackets: Sequence[ChargeBracket], amount: Decimal) -> ChargeBracket:
        """
        Pick the bracket for `amount` from brackets already sorted by start_amount.

        Raises:
            ChargeBracketNotFoundError: If the list is empty or no range contains the amount.
        """
        if not brackets:
            raise ChargeBracketNotFoundError("No charge brackets found for the user")

        amount = to_decimal(amount)
        for bracket in brackets:
            if bracket.contains(amount):
                return bracket

        raise ChargeBracketNotFoundError(details={"amount": str(amount)})

    @staticmethod
    async def load_brackets(db: AsyncSession, user_id: int) -> list[ChargeBracket]:
        result = await db.execute(
            select(ChargeBracket)
            .where(ChargeBracket.user_id == user_id)
            .order_by(ChargeBracket.start_amount.asc(), ChargeBracket.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def resolve(db: AsyncSession, user_id: int, amount: Decimal) -> ChargeBracket:
        """Load the user's brackets and return the one covering `amount`."""
        brackets = await BracketResolver.load_brackets(db, user_id)
        return BracketResolver.find_bracket(brackets, amount)

    @staticmethod
    async def ensure_no_overlap(
        db: AsyncSession,
        user_id: int,
        start_amount: Decimal,
        end_amount: Decimal,
        exclude_id: Optional[int] = None,
    ) -> None:
        """
        Reject a range that intersects one of the user's existing brackets.

        Ranges are inclusive, so [0, 1000] and [1000, 5000] overlap at 1000.
        The owning user row stays locked until the caller commits, so two
        admins writing brackets for one user cannot both pass the check.
        """
        await db.execute(select(User.id).where(User.id == user_id).with_for_update())

        query = select(ChargeBracket).where(
            ChargeBracket.user_id == user_id,
            ChargeBracket.start_amount <= end_amount,
            ChargeBracket.end_amount >= start_amount,
        )
        if exclude_id is not None:
            query = query.where(ChargeBracket.id != exclude_id)

        result = await db.execute(query.limit(1))
        conflict = result.scalar_one_or_none()
        if conflict:
            raise ChargeBracketOverlapError(conflicting_id=conflict.id)
