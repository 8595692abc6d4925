"""
Balance Mutator.

The only code path that changes FinancialDetails balances. Each mutation
locks the user's row, applies a guarded UPDATE ... RETURNING and derives the
before/after snapshot from the returned values, so two concurrent mutations
for the same user never report the same balance_before.

Mutations run inside the caller's transaction; the row lock is released when
the caller commits or rolls back.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from paygate.app.core.exceptions import InsufficientBalanceError, ResourceNotFoundError, BusinessRuleError
from paygate.app.domain.billing.money import quantize_money, ZERO
from paygate.app.models.financial_details import FinancialDetails

logger = logging.getLogger("paygate.balance")


@dataclass(frozen=True)
class BalanceSnapshot:
    user_id: int
    wallet_before: Decimal
    wallet_after: Decimal
    settlement_before: Decimal
    settlement_after: Decimal


class BalanceMutator:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock(self, user_id: int) -> FinancialDetails:
        """SELECT ... FOR UPDATE the user's financial details row."""
        result = await self.db.execute(
            select(FinancialDetails)
            .where(FinancialDetails.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        details = result.scalar_one_or_none()
        if not details:
            raise ResourceNotFoundError("Financial details", user_id)
        return details

    async def debit_settlement(self, user_id: int, amount: Decimal) -> BalanceSnapshot:
        """Take `amount` out of the settlement balance (payouts)."""
        return await self._apply(
            user_id,
            settlement_delta=-quantize_money(amount),
            guard=FinancialDetails.settlement,
            guard_amount=quantize_money(amount),
            error=InsufficientBalanceError(),
        )

    async def credit_settlement(self, user_id: int, amount: Decimal) -> BalanceSnapshot:
        """Put `amount` back on the settlement balance (payout reversals)."""
        return await self._apply(user_id, settlement_delta=quantize_money(amount))

    async def transfer_to_settlement(self, user_id: int, amount: Decimal) -> BalanceSnapshot:
        """Move `amount` from wallet to settlement (admin settle)."""
        amount = quantize_money(amount)
        return await self._apply(
            user_id,
            wallet_delta=-amount,
            settlement_delta=amount,
            guard=FinancialDetails.wallet,
            guard_amount=amount,
            error=InsufficientBalanceError("Insufficient wallet balance"),
        )

    async def credit_wallet(self, user_id: int, amount: Decimal) -> BalanceSnapshot:
        return await self._apply(user_id, wallet_delta=quantize_money(amount))

    async def debit_wallet(self, user_id: int, amount: Decimal) -> BalanceSnapshot:
        amount = quantize_money(amount)
        return await self._apply(
            user_id,
            wallet_delta=-amount,
            guard=FinancialDetails.wallet,
            guard_amount=amount,
            error=InsufficientBalanceError("Insufficient wallet balance"),
        )

    async def _apply(
        self,
        user_id: int,
        wallet_delta: Decimal = ZERO,
        settlement_delta: Decimal = ZERO,
        guard=None,
        guard_amount: Optional[Decimal] = None,
        error: Optional[Exception] = None,
    ) -> BalanceSnapshot:
        if wallet_delta == ZERO and settlement_delta == ZERO:
            raise BusinessRuleError("Amount must be greater than zero", error_code="ERR_AMOUNT_001")
        if wallet_delta < ZERO and settlement_delta < ZERO:
            raise BusinessRuleError("Only one balance can be debited per mutation", error_code="ERR_AMOUNT_002")

        details = await self.lock(user_id)

        stmt = update(FinancialDetails).where(FinancialDetails.id == details.id)
        if guard is not None:
            stmt = stmt.where(guard >= guard_amount)

        stmt = (
            stmt.values(
                wallet=FinancialDetails.wallet + wallet_delta,
                settlement=FinancialDetails.settlement + settlement_delta,
            )
            .returning(FinancialDetails.wallet, FinancialDetails.settlement)
            .execution_options(synchronize_session=False)
        )

        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            logger.warning(
                "Balance mutation rejected",
                extra={"user_id": user_id, "amount": str(guard_amount), "reason": str(error)},
            )
            raise error

        wallet_after = quantize_money(row.wallet)
        settlement_after = quantize_money(row.settlement)

        # Keep the locked instance in step without marking it dirty
        set_committed_value(details, "wallet", wallet_after)
        set_committed_value(details, "settlement", settlement_after)

        return BalanceSnapshot(
            user_id=user_id,
            wallet_before=quantize_money(wallet_after - wallet_delta),
            wallet_after=wallet_after,
            settlement_before=quantize_money(settlement_after - settlement_delta),
            settlement_after=settlement_after,
        )
