"""
Stripe Webhook Processing

Verifies, records and applies Stripe events.

IDEMPOTENCY: Every event is recorded in billing_events keyed by the Stripe
event id. A redelivered event that was already processed is acknowledged
without touching subscriptions or invoices again. Events that failed are
retried on redelivery.

Flow:
1. construct_event: signature check against STRIPE_WEBHOOK_SECRET
2. record_billing_event: insert or reuse the ledger row
3. process_event: dispatch by type, mark processed (or error)
4. send_invoice_notification for paid/failed invoices, best effort
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from sqlalchemy.orm import Session
import stripe

from zaltyko.config import get_settings
from zaltyko.core.exceptions import InternalError, ValidationError
from zaltyko.models.billing import BillingEvent, BillingEventStatus, BillingInvoice, Subscription
from zaltyko.services.plans import get_plan_id_by_stripe_price
from zaltyko.services.stripe_client import metadata_value, object_id, to_dict, unix_to_datetime
from zaltyko.services.stripe_context import (
    AcademyContext,
    context_from_invoice,
    context_from_subscription,
)
from zaltyko.services.notifications import send_invoice_notification
from zaltyko.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)
INVOICE_EVENTS = (
    "invoice.paid",
    "invoice.payment_failed",
    "invoice.payment_action_required",
    "invoice.finalized",
    "invoice.updated",
)
NOTIFY_EVENTS = (
    "invoice.paid",
    "invoice.payment_failed",
    "invoice.payment_action_required",
)


def construct_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Verify the Stripe signature and return the event as a dict."""
    secret = get_settings().STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise InternalError("Webhook not configured", code="WEBHOOK_NOT_CONFIGURED")

    if not signature:
        log_security_event("webhook_signature_failed", {"reason": "missing_signature"}, logger)
        raise ValidationError("Missing Stripe signature", code="SIGNATURE_VERIFICATION_FAILED")

    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        log_security_event("webhook_signature_failed", {"reason": str(e)}, logger)
        raise ValidationError("Invalid Stripe signature", code="SIGNATURE_VERIFICATION_FAILED")

    return to_dict(event)


def record_billing_event(db: Session, event: Dict[str, Any]) -> Tuple[BillingEvent, bool]:
    """
    Ledger row for an event.

    Returns: (row, already_processed)
    """
    row = db.query(BillingEvent).filter(BillingEvent.stripe_event_id == event["id"]).first()
    if row:
        if row.status == BillingEventStatus.PROCESSED.value:
            return row, True
        row.status = BillingEventStatus.RECEIVED.value
        row.error_message = None
        db.commit()
        return row, False

    row = BillingEvent(
        stripe_event_id=event["id"],
        type=event.get("type", "unknown"),
        status=BillingEventStatus.RECEIVED.value,
        payload=event,
    )
    db.add(row)
    db.commit()
    return row, False


def mark_event_processed(db: Session, row: BillingEvent, context: Optional[AcademyContext] = None) -> None:
    row.status = BillingEventStatus.PROCESSED.value
    row.processed_at = datetime.utcnow()
    if context:
        row.academy_id = context.academy_id
        row.tenant_id = context.tenant_id


def mark_event_error(db: Session, row: BillingEvent, message: str) -> None:
    row.status = BillingEventStatus.ERROR.value
    row.error_message = message[:2000]
    db.commit()


def upsert_subscription(db: Session, subscription: Dict[str, Any], user_id: str, deleted: bool = False) -> Subscription:
    """Mirror a Stripe subscription onto the user's subscription row."""
    items = (subscription.get("items") or {}).get("data") or []
    price_id = object_id(items[0].get("price")) if items else None
    plan_code = metadata_value(subscription.get("metadata"), "planCode", "plan_code")
    plan_id = get_plan_id_by_stripe_price(db, price_id, plan_code)

    # Newer API versions moved current_period_end onto the items
    period_end = subscription.get("current_period_end")
    if not period_end and items:
        period_end = items[0].get("current_period_end")

    row = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    if not row:
        row = Subscription(user_id=user_id)
        db.add(row)

    if plan_id:
        row.plan_id = plan_id
    row.status = "canceled" if deleted else (subscription.get("status") or "incomplete")
    row.stripe_customer_id = object_id(subscription.get("customer")) or row.stripe_customer_id
    row.stripe_subscription_id = subscription.get("id")
    row.stripe_price_id = price_id
    row.cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
    row.current_period_end = unix_to_datetime(period_end)
    return row


def handle_subscription_event(db: Session, event_type: str, subscription: Dict[str, Any],
                              row: BillingEvent) -> AcademyContext:
    context = context_from_subscription(db, subscription)

    if context.user_id:
        upsert_subscription(
            db, subscription, context.user_id,
            deleted=(event_type == "customer.subscription.deleted")
        )
    else:
        logger.warning(
            f"Subscription {subscription.get('id')} has no user metadata",
            extra={"event_id": row.stripe_event_id}
        )

    mark_event_processed(db, row, context)
    db.commit()
    return context


def upsert_invoice(db: Session, invoice: Dict[str, Any], context: AcademyContext) -> BillingInvoice:
    row = db.query(BillingInvoice).filter(
        BillingInvoice.stripe_invoice_id == invoice["id"]
    ).first()
    if not row:
        row = BillingInvoice(stripe_invoice_id=invoice["id"])
        db.add(row)

    row.academy_id = context.academy_id
    row.tenant_id = context.tenant_id
    row.status = invoice.get("status") or "draft"
    row.amount_due = invoice.get("amount_due") or 0
    row.amount_paid = invoice.get("amount_paid") or 0
    row.currency = invoice.get("currency") or "eur"
    row.billing_reason = invoice.get("billing_reason")
    row.hosted_invoice_url = invoice.get("hosted_invoice_url")
    row.invoice_pdf = invoice.get("invoice_pdf")
    row.period_start = unix_to_datetime(invoice.get("period_start"))
    row.period_end = unix_to_datetime(invoice.get("period_end"))
    row.invoice_metadata = invoice.get("metadata") or None
    return row


def handle_invoice_event(db: Session, invoice: Dict[str, Any], row: BillingEvent) -> AcademyContext:
    context = context_from_invoice(db, invoice)

    if context.academy_id and context.tenant_id:
        upsert_invoice(db, invoice, context)
    else:
        logger.warning(
            f"Invoice {invoice.get('id')} could not be linked to an academy",
            extra={"event_id": row.stripe_event_id}
        )

    mark_event_processed(db, row, context)
    db.commit()
    return context


def process_event(db: Session, event: Dict[str, Any], row: BillingEvent) -> Optional[AcademyContext]:
    event_type = event.get("type", "")
    data_object = to_dict((event.get("data") or {}).get("object"))

    if event_type in SUBSCRIPTION_EVENTS:
        return handle_subscription_event(db, event_type, data_object, row)
    if event_type in INVOICE_EVENTS:
        return handle_invoice_event(db, data_object, row)

    logger.debug(f"Ignoring Stripe event type {event_type}")
    mark_event_processed(db, row)
    db.commit()
    return None


def handle_webhook(db: Session, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Entry point for POST /api/billing/webhook."""
    event = construct_event(payload, signature)
    row, already_processed = record_billing_event(db, event)

    if already_processed:
        logger.info(f"Stripe event {event['id']} already processed", extra={"event_id": event["id"]})
        return {"received": True, "duplicate": True}

    try:
        context = process_event(db, event, row)
    except Exception as e:
        db.rollback()
        logger.error(
            f"Stripe event {event['id']} failed: {e}",
            exc_info=True,
            extra={"event_id": event["id"]}
        )
        mark_event_error(db, row, str(e))
        raise InternalError("Webhook processing failed", code="PROCESSING_FAILED")

    event_type = event.get("type")
    if event_type in NOTIFY_EVENTS and context and context.academy_id and context.tenant_id:
        try:
            send_invoice_notification(db, event_type, to_dict(event["data"]["object"]), context)
        except Exception as e:
            logger.error(
                f"Billing notification failed for {event['id']}: {e}",
                extra={"event_id": event["id"], "academy_id": context.academy_id}
            )

    logger.info(
        f"Stripe event processed: {event_type}",
        extra={"event_id": event["id"], "tenant_id": context.tenant_id if context else None}
    )
    return {"received": True}
