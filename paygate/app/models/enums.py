"""
User roles enumeration.

Defines the account types of the payout back-office.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Back-office operator with system-level access
        STAFF: Back-office staff (read-mostly)
        AGENT: Refers merchants and earns the agent charge
        PAYIN_PAYOUT: Merchant allowed to collect and pay out
        PAYOUT_ONLY: Merchant allowed to pay out only
        PAYIN_ONLY: Merchant allowed to collect only
    """
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    AGENT = "AGENT"
    PAYIN_PAYOUT = "PAYIN_PAYOUT"
    PAYOUT_ONLY = "PAYOUT_ONLY"
    PAYIN_ONLY = "PAYIN_ONLY"


# Roles that may call POST /payout
PAYOUT_ROLES = [UserRole.ADMIN, UserRole.AGENT, UserRole.PAYIN_PAYOUT, UserRole.PAYOUT_ONLY]

# Roles that hold a merchant account (charge brackets, balances)
MERCHANT_ROLES = [UserRole.PAYIN_PAYOUT, UserRole.PAYOUT_ONLY, UserRole.PAYIN_ONLY]

# Roles that may read back-office data
BACK_OFFICE_ROLES = [UserRole.ADMIN, UserRole.STAFF]
