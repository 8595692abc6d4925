"""
Charge Calculator.

Turns a matched bracket and the active platform charge into the charge
breakdown of one transaction.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional

from paygate.app.domain.billing.money import quantize_money, ZERO
from paygate.app.models.billing_enums import ChargeType, TransactionDirection

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ChargeBreakdown:
    amount: Decimal
    admin_charge: Decimal
    agent_charge: Decimal
    platform_fee: Decimal
    gst_amount: Decimal
    total_deduction: Decimal

    def as_dict(self) -> dict:
        return {key: str(value) for key, value in asdict(self).items()}


def compute_component(amount: Decimal, rate, charge_type) -> Decimal:
    """Percentage rates apply to the amount; fixed rates are the charge itself."""
    rate = quantize_money(rate)
    if ChargeType(charge_type) == ChargeType.PERCENTAGE:
        return quantize_money(amount * rate / HUNDRED)
    return rate


def calculate_charges(
    bracket,
    amount,
    direction: TransactionDirection = TransactionDirection.PAYOUT,
    platform_charge: Optional[object] = None,
) -> ChargeBreakdown:
    """
    Compute the charge breakdown for `amount`.

    Every component is rounded to the cent before it feeds the next step.
    The agent charge is informational: it is not part of total_deduction.

    Args:
        bracket: Matched ChargeBracket
        amount: Transaction amount
        direction: Selects the payin or payout rates
        platform_charge: Active PlatformCharge, if any

    Returns:
        ChargeBreakdown
    """
    amount = quantize_money(amount)

    admin_rate, admin_type = bracket.admin_rate(direction)
    agent_rate, agent_type = bracket.agent_rate(direction)

    admin_charge = compute_component(amount, admin_rate, admin_type)
    agent_charge = compute_component(amount, agent_rate, agent_type)

    if platform_charge is not None:
        platform_fee = quantize_money(admin_charge * quantize_money(platform_charge.charge) / HUNDRED)
        gst_amount = quantize_money(admin_charge * quantize_money(platform_charge.gst) / HUNDRED)
    else:
        platform_fee = ZERO
        gst_amount = ZERO

    total_deduction = quantize_money(amount + admin_charge + platform_fee + gst_amount)

    return ChargeBreakdown(
        amount=amount,
        admin_charge=admin_charge,
        agent_charge=agent_charge,
        platform_fee=platform_fee,
        gst_amount=gst_amount,
        total_deduction=total_deduction,
    )
