"""
Settlement Service (Domain Logic).

Admin balance operations: moving wallet funds to the settlement balance and
manual wallet credits/debits. Each operation writes its COMPLETED ledger
entry in the same transaction as the balance change.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.exceptions import ResourceNotFoundError
from paygate.app.domain.billing.balance_mutator import BalanceMutator, BalanceSnapshot
from paygate.app.domain.billing.transaction_recorder import TransactionRecorder
from paygate.app.models.billing_enums import LedgerStatus, LedgerTransactionType
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.user import User

logger = logging.getLogger("paygate.settlement")


class SettlementService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.mutator = BalanceMutator(db)
        self.recorder = TransactionRecorder(db)

    async def settle(
        self, user_id: int, amount: Decimal, actor_id: int, remark: Optional[str] = None
    ) -> tuple[BalanceSnapshot, LedgerEntry]:
        """
        Move `amount` from the user's wallet to their settlement balance.

        Raises:
            ResourceNotFoundError: Unknown user
            InsufficientBalanceError: Wallet lower than amount ("Insufficient wallet balance")
        """
        await self._get_user(user_id)

        try:
            snapshot = await self.mutator.transfer_to_settlement(user_id, amount)
            entry = await self.recorder.record(
                user_id=user_id,
                transaction_type=LedgerTransactionType.SETTLEMENT,
                amount=amount,
                snapshot=snapshot,
                status=LedgerStatus.COMPLETED,
                remark=remark or "Settlement",
                actor_id=actor_id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Settlement completed",
            extra={
                "user_id": user_id,
                "actor_id": actor_id,
                "amount": str(entry.amount),
                "wallet_after": str(snapshot.wallet_after),
                "settlement_after": str(snapshot.settlement_after),
            },
        )
        return snapshot, entry

    async def adjust_wallet(
        self, user_id: int, amount: Decimal, credit: bool, actor_id: int, remark: Optional[str] = None
    ) -> tuple[BalanceSnapshot, LedgerEntry]:
        """Credit or debit the wallet balance by `amount`."""
        await self._get_user(user_id)

        if credit:
            transaction_type = LedgerTransactionType.WALLET_CREDIT
        else:
            transaction_type = LedgerTransactionType.WALLET_DEBIT

        try:
            if credit:
                snapshot = await self.mutator.credit_wallet(user_id, amount)
            else:
                snapshot = await self.mutator.debit_wallet(user_id, amount)
            entry = await self.recorder.record(
                user_id=user_id,
                transaction_type=transaction_type,
                amount=amount,
                snapshot=snapshot,
                status=LedgerStatus.COMPLETED,
                remark=remark,
                actor_id=actor_id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Wallet adjusted",
            extra={"user_id": user_id, "actor_id": actor_id, "type": transaction_type.value, "amount": str(entry.amount)},
        )
        return snapshot, entry

    async def history(self, user_id: int, page: int = 1, page_size: int = 20) -> tuple[list[LedgerEntry], int]:
        """SETTLEMENT entries for a user, newest first, with the total count."""
        await self._get_user(user_id)

        filters = (
            LedgerEntry.user_id == user_id,
            LedgerEntry.transaction_type == LedgerTransactionType.SETTLEMENT,
        )
        total = (await self.db.execute(select(func.count(LedgerEntry.id)).where(*filters))).scalar_one()
        result = await self.db.execute(
            select(LedgerEntry)
            .where(*filters)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def _get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise ResourceNotFoundError("User", user_id)
        return user
