"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from paygate.app.api.v1.endpoints import (
    auth, admin, admin_billing, admin_settlement, admin_ops, payout, agent
)

router = APIRouter()

# Authentication
router.include_router(auth.router)

# Back-office account management
router.include_router(admin.router)

# Charges and balances
router.include_router(admin_billing.router)
router.include_router(admin_settlement.router)

# Payouts
router.include_router(payout.router)

# Agents
router.include_router(agent.router)

# Ops
router.include_router(admin_ops.router)
