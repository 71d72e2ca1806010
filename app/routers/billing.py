# =============================================================================
# app/routers/billing.py - Billing Endpoints
# =============================================================================
# Stripe checkout and portal, the current plan, order history and the
# checkout_payment ledger.
#
# POST /billing/webhook is called by Stripe and authenticates with the
# stripe-signature header instead of a bearer token.
# =============================================================================

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Path, Query, Request

from app.auth import AuthUser, get_current_user
from core.models.billing import CheckoutRequest, PaymentCreate, PaymentUpdate, PortalRequest
from core.services.billing_service import MAX_TRANSACTIONS_LIMIT, BillingService

router = APIRouter()


# =============================================================================
# Stripe
# =============================================================================

@router.post("/checkout")
async def create_checkout(
    request: CheckoutRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, str]:
    """
    Start a Stripe Checkout subscription session.

    Returns {url, sessionId}; redirect the browser to url.
    """
    return BillingService.create_checkout_session(
        user.id,
        user.email,
        plan_id=request.plan_id,
        billing_cycle=request.billing_cycle,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )


@router.post("/portal")
async def create_portal(
    request: PortalRequest | None = None,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, str]:
    """Stripe billing portal URL (400 when the user has never subscribed)."""
    return_url = request.return_url if request else None
    return BillingService.create_portal_session(user.id, return_url)


@router.get("/subscription")
async def get_subscription(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return BillingService.get_subscription(user.id)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Annotated[str | None, Header(alias="stripe-signature")] = None,
) -> dict[str, bool]:
    """Stripe event receiver. Needs the raw body for signature verification."""
    payload = await request.body()
    return BillingService.handle_webhook(payload, stripe_signature)


# =============================================================================
# Order history
# =============================================================================

@router.get("/transactions")
async def list_transactions(
    user: AuthUser = Depends(get_current_user),
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_TRANSACTIONS_LIMIT)] = 20,
    sort_by: Annotated[str, Query(description="created_at, amount_cents, status or title")] = "created_at",
    sort_order: Annotated[str, Query(description="asc or desc")] = "desc",
    status: Annotated[str | None, Query(description="succeeded, failed, pending or refunded")] = None,
    search: Annotated[str | None, Query(description="Match title or description")] = None,
) -> dict[str, Any]:
    return BillingService.list_transactions(
        user.id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        status=status,
        search=search,
    )


@router.get("/payments")
async def list_payments(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"items": BillingService.list_payments(user.id)}


@router.post("/payments")
async def create_payment(
    request: PaymentCreate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    item = BillingService.create_payment(user.id, request.model_dump(mode="json"))
    return {"item": item}


@router.patch("/payments/{payment_id}")
async def update_payment(
    payment_id: Annotated[UUID, Path(description="Payment UUID")],
    request: PaymentUpdate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    changes = request.model_dump(mode="json", exclude_unset=True)
    return {"item": BillingService.update_payment(payment_id, user.id, changes)}


@router.delete("/payments/{payment_id}")
async def delete_payment(
    payment_id: Annotated[UUID, Path(description="Payment UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, bool]:
    BillingService.delete_payment(payment_id, user.id)
    return {"success": True}
