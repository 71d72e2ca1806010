# =============================================================================
# core/models/billing.py - Billing & Payment Schemas
# =============================================================================
# Subscription plans, Stripe checkout requests and the checkout_payment
# ledger that backs the order/transaction history.
# =============================================================================

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class PlanId(str, Enum):
    FREE = "free"
    PRO = "pro"
    TEAM = "team"
    ENTERPRISE = "enterprise"


PLAN_SEATS: dict[str, int] = {
    PlanId.FREE.value: 3,
    PlanId.PRO.value: 10,
    PlanId.TEAM.value: 25,
    PlanId.ENTERPRISE.value: 100,
}

PAID_PLANS = frozenset({PlanId.PRO.value, PlanId.TEAM.value, PlanId.ENTERPRISE.value})

# Subscription statuses that count as "has a plan"
LIVE_SUBSCRIPTION_STATUSES = ["active", "trialing"]


class PaymentStatus(str, Enum):
    """
    Stored status of a checkout_payment row.

    "active" is what a successful payment is stored as; clients see it as
    "succeeded".
    """
    ACTIVE = "active"
    FAILED = "failed"
    PENDING = "pending"
    REFUNDED = "refunded"


def display_payment_status(stored: str | None) -> str:
    """Map a stored payment status to the label shown in order history."""
    if stored == PaymentStatus.ACTIVE.value:
        return "succeeded"
    return stored or PaymentStatus.PENDING.value


def stored_payment_status(requested: str) -> str:
    """Inverse of display_payment_status, for filters."""
    return PaymentStatus.ACTIVE.value if requested == "succeeded" else requested


class CheckoutRequest(BaseModel):
    """
    Start a subscription checkout.

    Example:
        {"plan_id": "pro", "billing_cycle": "yearly"}
    """
    plan_id: Literal["pro", "team", "enterprise"]
    billing_cycle: Literal["monthly", "yearly"] = "monthly"
    success_url: str | None = None
    cancel_url: str | None = None


class PortalRequest(BaseModel):
    return_url: str | None = None


class PaymentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    amount_cents: int | None = Field(default=None, ge=0)
    invoice_url: str | None = None


class PaymentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: PaymentStatus | None = None
    amount_cents: int | None = Field(default=None, ge=0)
    invoice_url: str | None = None


TRANSACTION_SORT_COLUMNS = ("created_at", "amount_cents", "status", "title")
