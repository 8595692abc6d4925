"""
Billing enumerations.
"""

import enum


class ChargeType(str, enum.Enum):
    """How a bracket rate is applied to the transaction amount."""
    PERCENTAGE = "percentage"  # rate is a percent of the amount
    FIXED = "fixed"  # rate is a flat amount


class TransactionDirection(str, enum.Enum):
    """Direction selects which bracket rates apply."""
    PAYIN = "payin"
    PAYOUT = "payout"


class LedgerTransactionType(str, enum.Enum):
    """Ledger entry type enumeration."""
    PAYOUT = "PAYOUT"  # Settlement debited for a bank payout
    PAYOUT_REVERSAL = "PAYOUT_REVERSAL"  # Settlement credited back after a gateway rejection
    SETTLEMENT = "SETTLEMENT"  # Wallet moved to settlement by an admin
    WALLET_CREDIT = "WALLET_CREDIT"
    WALLET_DEBIT = "WALLET_DEBIT"


class LedgerStatus(str, enum.Enum):
    """Ledger entry status enumeration."""
    PENDING = "PENDING"  # Balance debited, gateway outcome not known yet
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
