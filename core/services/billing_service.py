# =============================================================================
# core/services/billing_service.py - Stripe Billing
# =============================================================================
# Subscription checkout, the Stripe billing portal, plan lookup, webhook
# handling and the checkout_payment ledger (order history).
#
# Stripe is optional: every Stripe call checks settings.stripe_configured
# first and raises IntegrationNotConfiguredError (503) when it isn't.
#
# Webhook events handled:
# - customer.subscription.created / .updated -> upsert subscriptions
# - customer.subscription.deleted            -> status "canceled"
# - invoice.paid / invoice.payment_failed    -> checkout_payment row
#   (only for subscription_create / subscription_cycle invoices)
# =============================================================================

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import stripe

from app.config import settings
from app.exceptions import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
    WebhookSignatureError,
)
from core.models.billing import (
    LIVE_SUBSCRIPTION_STATUSES,
    PAID_PLANS,
    PLAN_SEATS,
    TRANSACTION_SORT_COLUMNS,
    PaymentStatus,
    PlanId,
    display_payment_status,
    stored_payment_status,
)
from lib.supabase_client import SupabaseClient
from lib.utils import ilike_any, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)

CUSTOMERS_TABLE = "stripe_customers"
SUBSCRIPTIONS_TABLE = "subscriptions"
PAYMENTS_TABLE = "checkout_payment"

RECENT_TRANSACTIONS = 10
MAX_TRANSACTIONS_LIMIT = 50
# Seats in use; team membership is not tracked yet
USED_SEATS = 1

INVOICE_BILLING_REASONS = ("subscription_create", "subscription_cycle")
FILTERABLE_STATUSES = ("active", "failed", "succeeded", "pending", "refunded")


def _iso_from_epoch(value: int | None) -> str | None:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def _to_transaction(row: dict[str, Any]) -> dict[str, Any]:
    amount_cents = int(row.get("amount_cents") or 0)
    return {
        "id": row["id"],
        "user_id": row.get("user_id"),
        "title": row.get("title") or "",
        "description": row.get("description"),
        "status": display_payment_status(row.get("status")),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
        "amount": amount_cents / 100,
        "amount_cents": amount_cents,
        "invoice_url": row.get("invoice_url"),
    }


class BillingService:
    """Service for subscriptions and payments."""

    @staticmethod
    def _require_stripe() -> None:
        if not settings.stripe_configured:
            raise IntegrationNotConfiguredError("Stripe")

    # -------------------------------------------------------------------------
    # Checkout & Portal
    # -------------------------------------------------------------------------

    @staticmethod
    def _customer_id(user_id: str) -> str | None:
        client = SupabaseClient.get_client()
        rows = (
            client.table(CUSTOMERS_TABLE)
            .select("stripe_customer_id")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
            .data
        ) or []
        return rows[0].get("stripe_customer_id") if rows else None

    @staticmethod
    def _get_or_create_customer(user_id: str, email: str | None) -> str:
        """Reuse the stored Stripe customer or create and persist one."""
        customer_id = BillingService._customer_id(user_id)
        if customer_id:
            return customer_id

        customer = stripe.Customer.create(
            api_key=settings.STRIPE_SECRET_KEY,
            email=email,
            metadata={"supabase_user_id": user_id},
        )
        client = SupabaseClient.get_client()
        client.table(CUSTOMERS_TABLE).upsert(
            {
                "user_id": user_id,
                "stripe_customer_id": customer.id,
                "email": email,
                "updated_at": utc_now_iso(),
            },
            on_conflict="user_id",
        ).execute()
        logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    @staticmethod
    def create_checkout_session(
        user_id: UUID | str,
        email: str | None,
        plan_id: str,
        billing_cycle: str = "monthly",
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, str]:
        """
        Start a subscription Checkout Session.

        Returns:
            {"url": ..., "sessionId": ...}

        Raises:
            IntegrationNotConfiguredError: Stripe key missing
            InvalidRequestError: Unknown plan or no price configured for it
            ExternalServiceError: Stripe rejected the request
        """
        BillingService._require_stripe()

        prices = settings.stripe_price_ids.get(plan_id)
        if prices is None:
            raise InvalidRequestError("Invalid plan_id", details={"plan_id": plan_id})
        price_id = prices["yearly"] if billing_cycle == "yearly" else prices["monthly"]
        if not price_id:
            raise InvalidRequestError(
                "Plan not found",
                details={"plan_id": plan_id, "billing_cycle": billing_cycle},
            )

        user_id_str = normalize_uuid(user_id)
        site = settings.site_base_url
        try:
            customer_id = BillingService._get_or_create_customer(user_id_str, email)
            session = stripe.checkout.Session.create(
                api_key=settings.STRIPE_SECRET_KEY,
                customer=customer_id,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url or f"{site}/dashboard/settings?checkout=success",
                cancel_url=cancel_url or f"{site}/dashboard/checkout-payment?canceled=1",
                metadata={
                    "supabase_user_id": user_id_str,
                    "plan_id": plan_id,
                    "billing_cycle": billing_cycle,
                },
                subscription_data={
                    "metadata": {"supabase_user_id": user_id_str, "plan_id": plan_id},
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout failed for user {user_id}: {e}")
            raise ExternalServiceError("Stripe", str(e))

        logger.info(f"Created checkout session {session.id} for user {user_id} ({plan_id}/{billing_cycle})")
        return {"url": session.url, "sessionId": session.id}

    @staticmethod
    def create_portal_session(user_id: UUID | str, return_url: str | None = None) -> dict[str, str]:
        """
        Raises:
            IntegrationNotConfiguredError: Stripe key missing
            InvalidRequestError: The user never checked out
        """
        BillingService._require_stripe()

        customer_id = BillingService._customer_id(normalize_uuid(user_id))
        if not customer_id:
            raise InvalidRequestError("No billing account found. Subscribe to a plan first.")

        try:
            session = stripe.billing_portal.Session.create(
                api_key=settings.STRIPE_SECRET_KEY,
                customer=customer_id,
                return_url=return_url or f"{settings.site_base_url}/dashboard/settings",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe portal failed for user {user_id}: {e}")
            raise ExternalServiceError("Stripe", str(e))

        return {"url": session.url}

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    @staticmethod
    def get_subscription(user_id: UUID | str) -> dict[str, Any]:
        """Current plan (free when nothing live), seat usage and recent payments."""
        client = SupabaseClient.get_client()
        user_id_str = normalize_uuid(user_id)

        rows = (
            client.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id_str)
            .in_("status", LIVE_SUBSCRIPTION_STATUSES)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
            .data
        ) or []
        subscription = rows[0] if rows else {}

        plan_id = subscription.get("plan_id") or PlanId.FREE.value
        seats = subscription.get("seats") or PLAN_SEATS.get(plan_id, PLAN_SEATS[PlanId.FREE.value])

        payments = (
            client.table(PAYMENTS_TABLE)
            .select("*")
            .eq("user_id", user_id_str)
            .order("created_at", desc=True)
            .limit(RECENT_TRANSACTIONS)
            .execute()
            .data
        ) or []

        return {
            "plan": {
                "id": plan_id,
                "name": plan_id.capitalize(),
                "seats": seats,
                "used_seats": USED_SEATS,
                "usage_percent": round(USED_SEATS / seats * 100),
                "status": subscription.get("status"),
                "current_period_end": subscription.get("current_period_end"),
                "cancel_at_period_end": subscription.get("cancel_at_period_end"),
            },
            "hasPremiumAccess": plan_id in PAID_PLANS,
            "transactions": [_to_transaction(row) for row in payments],
        }

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------

    @staticmethod
    def handle_webhook(payload: bytes, signature: str | None) -> dict[str, bool]:
        """
        Verify and apply a Stripe webhook event.

        Raises:
            IntegrationNotConfiguredError: Stripe or the webhook secret missing
            WebhookSignatureError: Missing or invalid stripe-signature header
        """
        if not settings.stripe_configured or not settings.STRIPE_WEBHOOK_SECRET:
            raise IntegrationNotConfiguredError("Stripe")
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Rejected Stripe webhook: body is not UTF-8")
            raise WebhookSignatureError("Payload is not valid UTF-8")

        try:
            stripe.WebhookSignature.verify_header(body, signature, settings.STRIPE_WEBHOOK_SECRET)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            raise WebhookSignatureError(str(e))

        try:
            event = json.loads(body)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid webhook payload: {e}")

        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            BillingService._upsert_subscription(obj)
        elif event_type == "customer.subscription.deleted":
            BillingService._cancel_subscription(obj)
        elif event_type in ("invoice.paid", "invoice.payment_failed"):
            BillingService._record_invoice(obj, paid=event_type == "invoice.paid")
        else:
            logger.debug(f"Ignoring Stripe event {event_type}")

        return {"received": True}

    @staticmethod
    def _upsert_subscription(sub: dict[str, Any]) -> None:
        metadata = sub.get("metadata") or {}
        user_id = metadata.get("supabase_user_id")
        if not user_id:
            logger.warning(f"Subscription {sub.get('id')} has no supabase_user_id; skipped")
            return

        plan_id = metadata.get("plan_id") or PlanId.PRO.value
        items = (sub.get("items") or {}).get("data") or []
        price_id = (items[0].get("price") or {}).get("id") if items else None

        client = SupabaseClient.get_client()
        client.table(SUBSCRIPTIONS_TABLE).upsert(
            {
                "user_id": user_id,
                "stripe_subscription_id": sub["id"],
                "stripe_price_id": price_id,
                "plan_id": plan_id,
                "status": sub.get("status"),
                "current_period_start": _iso_from_epoch(sub.get("current_period_start")),
                "current_period_end": _iso_from_epoch(sub.get("current_period_end")),
                "cancel_at_period_end": bool(sub.get("cancel_at_period_end")),
                "seats": PLAN_SEATS.get(plan_id, PLAN_SEATS[PlanId.FREE.value]),
                "updated_at": utc_now_iso(),
            },
            on_conflict="stripe_subscription_id",
        ).execute()
        logger.info(f"Synced subscription {sub['id']} for user {user_id}: {sub.get('status')}")

    @staticmethod
    def _cancel_subscription(sub: dict[str, Any]) -> None:
        if not sub.get("id"):
            return
        client = SupabaseClient.get_client()
        (
            client.table(SUBSCRIPTIONS_TABLE)
            .update({"status": "canceled", "updated_at": utc_now_iso()})
            .eq("stripe_subscription_id", sub["id"])
            .execute()
        )
        logger.info(f"Subscription {sub['id']} canceled")

    @staticmethod
    def _record_invoice(invoice: dict[str, Any], paid: bool) -> None:
        if invoice.get("billing_reason") not in INVOICE_BILLING_REASONS:
            return

        subscription = invoice.get("subscription")
        sub_id = subscription.get("id") if isinstance(subscription, dict) else subscription
        if not sub_id:
            return

        client = SupabaseClient.get_client()
        rows = (
            client.table(SUBSCRIPTIONS_TABLE)
            .select("user_id")
            .eq("stripe_subscription_id", sub_id)
            .limit(1)
            .execute()
            .data
        ) or []
        if not rows:
            logger.warning(f"Invoice {invoice.get('id')} for unknown subscription {sub_id}")
            return

        client.table(PAYMENTS_TABLE).insert({
            "user_id": rows[0]["user_id"],
            "title": f"Invoice {invoice.get('number') or invoice.get('id')}",
            "description": "Paid" if paid else "Payment failed",
            "status": PaymentStatus.ACTIVE.value if paid else PaymentStatus.FAILED.value,
            "amount_cents": invoice.get("amount_paid") if paid else invoice.get("amount_due"),
            "invoice_url": invoice.get("hosted_invoice_url"),
            "updated_at": utc_now_iso(),
        }).execute()
        logger.info(f"Recorded invoice {invoice.get('id')} ({'paid' if paid else 'failed'})")

    # -------------------------------------------------------------------------
    # Order History
    # -------------------------------------------------------------------------

    @staticmethod
    def list_transactions(
        user_id: UUID | str,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        status: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """
        Paginated payment history.

        Unknown sort columns fall back to created_at and unknown status
        filters are ignored. "succeeded" filters stored "active" rows.
        """
        page = max(1, page)
        limit = max(1, min(limit, MAX_TRANSACTIONS_LIMIT))
        if sort_by not in TRANSACTION_SORT_COLUMNS:
            sort_by = "created_at"

        client = SupabaseClient.get_client()
        query = (
            client.table(PAYMENTS_TABLE)
            .select("*", count="exact")
            .eq("user_id", normalize_uuid(user_id))
        )
        if search and search.strip():
            query = query.or_(ilike_any(["title", "description"], search))
        if status in FILTERABLE_STATUSES:
            query = query.eq("status", stored_payment_status(status))

        offset = (page - 1) * limit
        response = (
            query
            .order(sort_by, desc=sort_order != "asc")
            .range(offset, offset + limit - 1)
            .execute()
        )
        total = response.count or 0

        return {
            "items": [_to_transaction(row) for row in response.data or []],
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        }

    # -------------------------------------------------------------------------
    # checkout_payment CRUD
    # -------------------------------------------------------------------------

    @staticmethod
    def list_payments(user_id: UUID | str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        return (
            client.table(PAYMENTS_TABLE)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .execute()
            .data
        ) or []

    @staticmethod
    def create_payment(user_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        row = {
            **data,
            "user_id": normalize_uuid(user_id),
            "title": data["title"].strip(),
            "updated_at": utc_now_iso(),
        }
        if isinstance(row.get("description"), str):
            row["description"] = row["description"].strip() or None
        payment = SupabaseClient.insert_row(PAYMENTS_TABLE, row)
        logger.info(f"Created payment {payment['id']} for user {user_id}")
        return payment

    @staticmethod
    def update_payment(payment_id: str | UUID, user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Raises:
            ResourceNotFoundError: If the payment doesn't exist for the user
        """
        if isinstance(changes.get("title"), str):
            changes["title"] = changes["title"].strip()
        updated = SupabaseClient.update_owned_row(
            PAYMENTS_TABLE, payment_id, user_id, {**changes, "updated_at": utc_now_iso()}
        )
        if not updated:
            raise ResourceNotFoundError("Payment", str(payment_id))
        logger.info(f"Updated payment {payment_id}: {sorted(changes)}")
        return updated

    @staticmethod
    def delete_payment(payment_id: str | UUID, user_id: UUID | str) -> None:
        if not SupabaseClient.delete_owned_row(PAYMENTS_TABLE, payment_id, user_id):
            raise ResourceNotFoundError("Payment", str(payment_id))
        logger.info(f"Deleted payment {payment_id}")
