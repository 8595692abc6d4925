"""
Payout Service (Domain Logic).

Orchestrates a merchant payout: validation, pricing, the locked settlement
debit with its ledger entry, and the gateway call that settles the entry.

Flow:
1. Validate caller (IP whitelist, minimum amount, account flags)
2. Idempotency check on reference_id
3. Resolve the user's payout gateway
4. Resolve bracket + platform charge, calculate charges
5. One transaction: debit settlement, PENDING ledger entry, outbox event
6. Gateway call after commit, then COMPLETED / FAILED + reversal / DLQ
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.config import settings
from paygate.app.core.exceptions import (
    AccountDisabledError,
    BusinessRuleError,
    DuplicateTransactionError,
    GatewayRejectedError,
    GatewayUnavailableError,
    IpNotWhitelistedError,
    ResourceNotFoundError,
)
from paygate.app.core.reliability import CircuitBreaker, CircuitOpenError, payout_circuit_breaker
from paygate.app.domain.billing.balance_mutator import BalanceMutator
from paygate.app.domain.billing.bracket_resolver import BracketResolver
from paygate.app.domain.billing.charge_calculator import ChargeBreakdown, calculate_charges
from paygate.app.domain.billing.money import quantize_money
from paygate.app.domain.billing.platform_charges import PlatformChargeService
from paygate.app.domain.billing.transaction_recorder import TransactionRecorder
from paygate.app.models.billing_enums import LedgerStatus, LedgerTransactionType, TransactionDirection
from paygate.app.models.dlq import DeadLetterQueue, DLQStatus
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.merchant_details import MerchantDetails
from paygate.app.models.user import User
from paygate.app.models.user_ip import UserIP
from paygate.app.models.user_status import UserStatus
from paygate.app.services.payout_gateway import (
    GatewayRegistry,
    GatewayResult,
    GatewayTransportError,
    PayoutInstruction,
)

logger = logging.getLogger("paygate.payout")

DLQ_TASK_PAYOUT = "payout_gateway_call"


@dataclass
class PayoutResult:
    entry: LedgerEntry
    breakdown: ChargeBreakdown
    gateway_result: Optional[GatewayResult] = None


class PayoutService:

    def __init__(
        self,
        db: AsyncSession,
        gateway_registry: GatewayRegistry,
        circuit_breaker: CircuitBreaker = payout_circuit_breaker,
    ):
        self.db = db
        self.gateway_registry = gateway_registry
        self.circuit_breaker = circuit_breaker
        self.mutator = BalanceMutator(db)
        self.recorder = TransactionRecorder(db)

    async def initiate(self, user: User, request, client_ip: Optional[str]) -> PayoutResult:
        """
        Run a payout for `user`.

        Args:
            user: Authenticated caller
            request: PayoutRequest body
            client_ip: Resolved source IP of the request

        Returns:
            PayoutResult for a payout the gateway accepted

        Raises:
            GatewayRejectedError: Gateway refused; balance already credited back
            GatewayUnavailableError: Outcome unknown; entry left PENDING and parked in the DLQ
        """
        amount = quantize_money(request.amount)

        # 1. Validate caller
        await self._check_ip(user.id, client_ip)
        self._check_minimum(amount)
        await self._check_account(user.id)

        # 2. Idempotency
        await self._check_reference(request.reference_id)

        # 3. Gateway
        gateway = await self._resolve_gateway(user.id)

        # 4. Pricing
        bracket = await BracketResolver.resolve(self.db, user.id, amount)
        platform_charge = await PlatformChargeService.resolve_active(self.db)
        breakdown = calculate_charges(bracket, amount, TransactionDirection.PAYOUT, platform_charge)

        beneficiary = {
            "account_number": request.account_number,
            "account_ifsc": request.account_ifsc,
            "bank_name": request.bank_name,
            "beneficiary_name": request.beneficiary_name,
        }

        # 5. Debit + ledger in one transaction
        try:
            snapshot = await self.mutator.debit_settlement(user.id, breakdown.total_deduction)
            entry = await self.recorder.record(
                user_id=user.id,
                transaction_type=LedgerTransactionType.PAYOUT,
                amount=amount,
                snapshot=snapshot,
                breakdown=breakdown,
                status=LedgerStatus.PENDING,
                reference_id=request.reference_id,
                remark=f"Payout to {request.beneficiary_name}",
                beneficiary=beneficiary,
                metadata={"gateway": gateway.name, "charge_bracket_id": bracket.id, "client_ip": client_ip},
                actor_id=user.id,
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Duplicate payout reference", extra={"user_id": user.id, "reference_id": request.reference_id})
            raise DuplicateTransactionError(request.reference_id)
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Payout debited",
            extra={
                "user_id": user.id,
                "reference_id": request.reference_id,
                "amount": str(amount),
                "total_deduction": str(breakdown.total_deduction),
                "balance_before": str(snapshot.settlement_before),
                "balance_after": str(snapshot.settlement_after),
            },
        )

        # 6. Gateway call outside the transaction
        instruction = self._instruction_for(entry)
        gateway_result = await self._dispatch(entry, gateway, instruction)
        return PayoutResult(entry=entry, breakdown=breakdown, gateway_result=gateway_result)

    async def retry_parked(self, item: DeadLetterQueue) -> LedgerEntry:
        """
        Re-send a payout whose gateway outcome was unknown.

        The gateway deduplicates on apitxnid, so resending the same reference
        cannot pay twice.
        """
        if item.task_name != DLQ_TASK_PAYOUT:
            raise BusinessRuleError(f"DLQ item {item.id} is not a payout", error_code="ERR_DLQ_001")
        if item.is_settled:
            raise BusinessRuleError(f"DLQ item {item.id} is already {item.status.value}", error_code="ERR_DLQ_002")

        entry = await self.db.get(LedgerEntry, item.ledger_entry_id) if item.ledger_entry_id else None
        if not entry:
            raise ResourceNotFoundError("Ledger entry", item.ledger_entry_id)

        item.start_retry()

        if entry.status != LedgerStatus.PENDING:
            item.status = DLQStatus.PROCESSED
            await self.db.commit()
            return entry

        gateway = self.gateway_registry.get(item.gateway)
        if gateway is None:
            raise BusinessRuleError("Payout gateway is not configured", error_code="ERR_GATEWAY_003")

        await self.db.commit()

        try:
            await self._dispatch(entry, gateway, self._instruction_for(entry), park=False)
        except GatewayRejectedError:
            item.status = DLQStatus.PROCESSED
            await self.db.commit()
        except GatewayUnavailableError as exc:
            item.retry_failed(str(exc.__cause__ or exc.message))
            await self.db.commit()
            raise
        else:
            item.status = DLQStatus.PROCESSED
            await self.db.commit()
        return entry

    async def _dispatch(self, entry: LedgerEntry, gateway, instruction: PayoutInstruction, park: bool = True) -> GatewayResult:
        try:
            result = await self.circuit_breaker.call(gateway.send_payout, instruction)
        except (GatewayTransportError, CircuitOpenError) as exc:
            logger.error(
                "Payout gateway unavailable, leaving entry pending",
                extra={"reference_id": entry.reference_id, "ledger_entry_id": entry.id, "error": str(exc)},
            )
            await self._unknown_outcome(entry, gateway, exc, park)
        except Exception as exc:
            # The debit is already committed; any failure here leaves the outcome unknown
            logger.exception(
                "Unexpected payout gateway failure, leaving entry pending",
                extra={"reference_id": entry.reference_id, "ledger_entry_id": entry.id},
            )
            await self._unknown_outcome(entry, gateway, exc, park)

        if result.success:
            await self.recorder.mark_status(
                entry, LedgerStatus.COMPLETED, utr=result.utr, gateway_response=result.raw
            )
            await self.db.commit()
            logger.info(
                "Payout completed",
                extra={"reference_id": entry.reference_id, "user_id": entry.user_id, "utr": result.utr},
            )
            return result

        await self._reverse(entry, result)
        raise GatewayRejectedError(
            message=result.message or "Payout processing failed",
            details={"reference_id": entry.reference_id, "status": LedgerStatus.FAILED.value},
        )

    async def _unknown_outcome(self, entry: LedgerEntry, gateway, exc: Exception, park: bool) -> None:
        if park:
            await self._park(entry, gateway.name, exc)
        raise GatewayUnavailableError(
            details={"reference_id": entry.reference_id, "status": LedgerStatus.PENDING.value}
        ) from exc

    async def _reverse(self, entry: LedgerEntry, result: GatewayResult) -> None:
        """Mark the payout FAILED and credit the settlement back in one transaction."""
        try:
            await self.recorder.mark_status(entry, LedgerStatus.FAILED, gateway_response=result.raw)
            snapshot = await self.mutator.credit_settlement(entry.user_id, entry.total_deduction)
            await self.recorder.record(
                user_id=entry.user_id,
                transaction_type=LedgerTransactionType.PAYOUT_REVERSAL,
                amount=entry.total_deduction,
                snapshot=snapshot,
                status=LedgerStatus.COMPLETED,
                remark=f"Reversal of payout {entry.reference_id}",
                metadata={"reversal_of": entry.id, "reference_id": entry.reference_id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.warning(
            "Payout rejected by gateway, settlement credited back",
            extra={
                "reference_id": entry.reference_id,
                "user_id": entry.user_id,
                "amount": str(entry.total_deduction),
                "gateway_message": result.message,
            },
        )

    async def _park(self, entry: LedgerEntry, gateway_name: str, exc: Exception) -> DeadLetterQueue:
        item = DeadLetterQueue(
            task_name=DLQ_TASK_PAYOUT,
            ledger_entry_id=entry.id,
            reference_id=entry.reference_id,
            gateway=gateway_name,
            error_message=str(exc) or exc.__class__.__name__,
            payload={"user_id": entry.user_id, "amount": str(entry.amount), "total_deduction": str(entry.total_deduction)},
            status=DLQStatus.FAILED,
            retry_count=0,
        )
        self.db.add(item)
        await self.db.commit()
        return item

    async def _check_ip(self, user_id: int, client_ip: Optional[str]) -> None:
        if client_ip:
            result = await self.db.execute(
                select(UserIP.id).where(
                    UserIP.user_id == user_id,
                    UserIP.ip_address == client_ip,
                    UserIP.is_active == True,
                )
            )
            if result.scalar_one_or_none() is not None:
                return
        logger.warning("Payout from non-whitelisted IP", extra={"user_id": user_id, "client_ip": client_ip})
        raise IpNotWhitelistedError(client_ip or "unknown")

    def _check_minimum(self, amount) -> None:
        minimum = quantize_money(settings.min_payout_amount)
        if amount < minimum:
            raise BusinessRuleError(
                f"Minimum payout amount is {settings.min_payout_amount}",
                error_code="ERR_AMOUNT_003",
                details={"minimum": str(minimum)},
            )

    async def _check_account(self, user_id: int) -> None:
        result = await self.db.execute(select(UserStatus).where(UserStatus.user_id == user_id))
        user_status = result.scalar_one_or_none()

        if user_status is None or not user_status.status:
            raise AccountDisabledError("Account is inactive")
        if not user_status.payout_status:
            raise AccountDisabledError("Payout service is disabled for this account")
        if user_status.bank_deactive:
            raise BusinessRuleError("Bank is deactivated for this account", error_code="ERR_ACCOUNT_002")
        if user_status.technical_issue:
            raise BusinessRuleError(
                "Payouts are temporarily unavailable due to a technical issue", error_code="ERR_ACCOUNT_003"
            )

    async def _check_reference(self, reference_id: str) -> None:
        result = await self.db.execute(
            select(LedgerEntry.status).where(LedgerEntry.reference_id == reference_id)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            raise DuplicateTransactionError(reference_id, existing_status=existing.value)

    async def _resolve_gateway(self, user_id: int):
        result = await self.db.execute(
            select(MerchantDetails.payout_gateway).where(MerchantDetails.user_id == user_id)
        )
        gateway = self.gateway_registry.get(result.scalar_one_or_none())
        if gateway is None:
            raise BusinessRuleError("Payout gateway is not configured for this account", error_code="ERR_GATEWAY_003")
        return gateway

    @staticmethod
    def _instruction_for(entry: LedgerEntry) -> PayoutInstruction:
        beneficiary = entry.beneficiary or {}
        return PayoutInstruction(
            reference_id=entry.reference_id,
            amount=entry.amount,
            account_number=beneficiary.get("account_number"),
            ifsc=beneficiary.get("account_ifsc"),
            bank_name=beneficiary.get("bank_name"),
            beneficiary_name=beneficiary.get("beneficiary_name"),
        )
