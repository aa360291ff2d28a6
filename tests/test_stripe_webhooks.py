# =============================================================================
# tests/test_stripe_webhooks.py - Stripe Webhook Tests
# =============================================================================
# Tests for signature verification, subscription and invoice mirroring and
# idempotent event handling. Stripe calls are monkeypatched; the payloads
# are shaped like real webhook events.
# =============================================================================

import pytest
import stripe

from zaltyko.config import get_settings
from zaltyko.models.billing import BillingEvent, BillingInvoice, Plan, Subscription

WEBHOOK_URL = "/api/billing/webhook"
SIGNATURE = {"Stripe-Signature": "t=1700000000,v1=deadbeef"}

# 2026-01-01 00:00:00 UTC
PERIOD_END = 1767225600


@pytest.fixture
def deliver(client, monkeypatch):
    """Post an event to the webhook as if Stripe had signed it."""

    def _deliver(event, headers=SIGNATURE):
        monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: event)
        return client.post(WEBHOOK_URL, content=b'{"id": "raw"}', headers=headers)

    return _deliver


def _subscription_event(event_id, event_type, user_id, plan_code="pro", status="active", **fields):
    subscription = {
        "id": "sub_123",
        "object": "subscription",
        "customer": "cus_123",
        "status": status,
        "cancel_at_period_end": False,
        "metadata": {"userId": user_id, "planCode": plan_code},
        "items": {"data": [{"price": {"id": "price_pro_monthly"}, "current_period_end": PERIOD_END}]},
    }
    subscription.update(fields)
    return {"id": event_id, "type": event_type, "data": {"object": subscription}}


def _invoice_event(event_id, invoice, event_type="invoice.paid"):
    values = {
        "id": "in_123",
        "object": "invoice",
        "status": "paid",
        "amount_due": 1900,
        "amount_paid": 1900,
        "currency": "eur",
        "billing_reason": "subscription_cycle",
        "hosted_invoice_url": "https://invoice.stripe.com/i/in_123",
        "metadata": {},
    }
    values.update(invoice)
    return {"id": event_id, "type": event_type, "data": {"object": values}}


# =============================================================================
# Signature Tests
# =============================================================================

class TestSignature:
    """Test that only signed payloads are accepted."""

    def test_missing_signature_is_400(self, client, db):
        response = client.post(WEBHOOK_URL, content=b"{}")

        assert response.status_code == 400
        assert response.json()["error"] == "SIGNATURE_VERIFICATION_FAILED"

    def test_invalid_signature_is_400(self, client, db, monkeypatch):
        def reject(payload, sig, secret):
            raise stripe.SignatureVerificationError("No signatures found", sig)

        monkeypatch.setattr(stripe.Webhook, "construct_event", reject)

        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNATURE)

        assert response.status_code == 400
        assert response.json()["error"] == "SIGNATURE_VERIFICATION_FAILED"
        assert db.query(BillingEvent).count() == 0

    def test_webhook_needs_no_bearer_token(self, deliver, db):
        response = deliver({"id": "evt_ping", "type": "ping", "data": {"object": {}}})

        assert response.status_code == 200


class TestWebhookConfiguration:
    """Test the webhook when no signing secret is configured."""

    def test_missing_secret_is_500(self, client, db, monkeypatch):
        # Arrange
        monkeypatch.setattr(get_settings(), "STRIPE_WEBHOOK_SECRET", None)

        # Act
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNATURE)

        # Assert
        assert response.status_code == 500
        assert response.json()["error"] == "WEBHOOK_NOT_CONFIGURED"
        assert db.query(BillingEvent).count() == 0

    def test_empty_secret_is_500(self, client, db, monkeypatch):
        monkeypatch.setattr(get_settings(), "STRIPE_WEBHOOK_SECRET", "")

        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNATURE)

        assert response.json()["error"] == "WEBHOOK_NOT_CONFIGURED"


# =============================================================================
# Subscription Event Tests
# =============================================================================

class TestSubscriptionEvents:
    """Test mirroring Stripe subscriptions onto the owner's row."""

    def test_created_sets_plan_and_period(self, deliver, db, owner, academy):
        # Arrange
        event = _subscription_event("evt_sub_created", "customer.subscription.created", owner.id)

        # Act
        response = deliver(event)

        # Assert
        assert response.status_code == 200
        assert response.json() == {"received": True}
        subscription = db.query(Subscription).filter(Subscription.user_id == owner.id).one()
        db.refresh(subscription)
        plan = db.query(Plan).filter(Plan.id == subscription.plan_id).one()
        assert plan.code == "pro"
        assert subscription.status == "active"
        assert subscription.stripe_customer_id == "cus_123"
        assert subscription.stripe_subscription_id == "sub_123"
        assert subscription.current_period_end.year == 2026

    def test_event_is_linked_to_owner_academy(self, deliver, db, owner, academy):
        deliver(_subscription_event("evt_link", "customer.subscription.updated", owner.id))

        row = db.query(BillingEvent).filter(BillingEvent.stripe_event_id == "evt_link").one()
        assert row.status == "processed"
        assert row.academy_id == academy.id
        assert row.tenant_id == academy.tenant_id

    def test_price_id_wins_over_plan_code(self, deliver, db, owner, academy):
        """A known Stripe price decides the plan even when metadata disagrees."""
        premium = db.query(Plan).filter(Plan.code == "premium").one()
        premium.stripe_price_id = "price_pro_monthly"
        db.commit()

        deliver(_subscription_event("evt_price", "customer.subscription.updated", owner.id, plan_code="pro"))

        subscription = db.query(Subscription).filter(Subscription.user_id == owner.id).one()
        db.refresh(subscription)
        assert subscription.plan_id == premium.id

    def test_deleted_marks_canceled(self, deliver, db, owner, academy):
        deliver(_subscription_event("evt_created", "customer.subscription.created", owner.id))

        deliver(_subscription_event("evt_deleted", "customer.subscription.deleted", owner.id, status="canceled"))

        subscription = db.query(Subscription).filter(Subscription.user_id == owner.id).one()
        db.refresh(subscription)
        assert subscription.status == "canceled"

    def test_redelivery_is_acknowledged_once(self, deliver, db, owner, academy):
        event = _subscription_event("evt_dup", "customer.subscription.created", owner.id)

        first = deliver(event)
        second = deliver(event)

        assert first.json() == {"received": True}
        assert second.json() == {"received": True, "duplicate": True}
        assert db.query(BillingEvent).filter(BillingEvent.stripe_event_id == "evt_dup").count() == 1

    def test_missing_user_metadata_is_still_processed(self, deliver, db):
        event = _subscription_event("evt_orphan", "customer.subscription.created", None, metadata={})

        response = deliver(event)

        assert response.status_code == 200
        row = db.query(BillingEvent).filter(BillingEvent.stripe_event_id == "evt_orphan").one()
        assert row.status == "processed"
        assert row.academy_id is None


# =============================================================================
# Invoice Event Tests
# =============================================================================

class TestInvoiceEvents:
    """Test invoice mirroring and academy resolution."""

    def test_paid_invoice_from_metadata(self, deliver, db, academy):
        event = _invoice_event("evt_inv", {"metadata": {"academyId": academy.id, "tenantId": academy.tenant_id}})

        response = deliver(event)

        assert response.status_code == 200
        invoice = db.query(BillingInvoice).filter(BillingInvoice.stripe_invoice_id == "in_123").one()
        assert invoice.academy_id == academy.id
        assert invoice.amount_paid == 1900
        assert invoice.status == "paid"

    def test_invoice_resolved_through_local_subscription(self, deliver, db, owner, academy):
        subscription = db.query(Subscription).filter(Subscription.user_id == owner.id).one()
        subscription.stripe_subscription_id = "sub_local"
        db.commit()

        deliver(_invoice_event("evt_inv_local", {"subscription": "sub_local"}))

        invoice = db.query(BillingInvoice).filter(BillingInvoice.stripe_invoice_id == "in_123").one()
        assert invoice.tenant_id == academy.tenant_id

    def test_invoice_resolved_through_stripe_subscription(self, deliver, db, owner, academy, monkeypatch):
        """Unknown subscription ids are looked up in Stripe for their metadata."""
        # Arrange
        retrieved = []

        def fake_retrieve(subscription_id, **kwargs):
            retrieved.append(subscription_id)
            return {"id": subscription_id, "metadata": {"userId": owner.id}}

        monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)
        event = _invoice_event(
            "evt_inv_remote",
            {"parent": {"subscription_details": {"subscription": "sub_remote"}}},
        )

        # Act
        deliver(event)

        # Assert
        assert retrieved == ["sub_remote"]
        invoice = db.query(BillingInvoice).filter(BillingInvoice.stripe_invoice_id == "in_123").one()
        assert invoice.academy_id == academy.id

    def test_redelivered_invoice_updates_same_row(self, deliver, db, academy):
        metadata = {"academyId": academy.id, "tenantId": academy.tenant_id}
        deliver(_invoice_event("evt_open", {"status": "open", "amount_paid": 0, "metadata": metadata},
                               event_type="invoice.finalized"))

        deliver(_invoice_event("evt_paid", {"metadata": metadata}))

        rows = db.query(BillingInvoice).all()
        assert len(rows) == 1
        db.refresh(rows[0])
        assert rows[0].status == "paid"

    def test_unlinked_invoice_is_skipped(self, deliver, db):
        response = deliver(_invoice_event("evt_unlinked", {}))

        assert response.status_code == 200
        assert db.query(BillingInvoice).count() == 0


# =============================================================================
# Ledger Tests
# =============================================================================

class TestBillingEventLedger:
    """Test the billing_events ledger."""

    def test_unknown_type_is_marked_processed(self, deliver, db):
        deliver({"id": "evt_other", "type": "customer.created", "data": {"object": {"id": "cus_1"}}})

        row = db.query(BillingEvent).filter(BillingEvent.stripe_event_id == "evt_other").one()
        assert row.status == "processed"
        assert row.type == "customer.created"
        assert row.processed_at is not None

    def test_failed_event_is_retried(self, deliver, db, owner, academy, monkeypatch):
        """An event that errored is processed again on redelivery."""
        # Arrange
        from zaltyko.services import stripe_webhooks

        event = _subscription_event("evt_retry", "customer.subscription.created", owner.id)
        real_upsert = stripe_webhooks.upsert_subscription

        def broken_upsert(*args, **kwargs):
            raise RuntimeError("database hiccup")

        monkeypatch.setattr(stripe_webhooks, "upsert_subscription", broken_upsert)
        failed = deliver(event)
        row = db.query(BillingEvent).filter(BillingEvent.stripe_event_id == "evt_retry").one()
        assert failed.status_code == 500
        assert row.status == "error"

        # Act
        monkeypatch.setattr(stripe_webhooks, "upsert_subscription", real_upsert)
        retried = deliver(event)

        # Assert
        assert retried.json() == {"received": True}
        db.refresh(row)
        assert row.status == "processed"
        assert row.error_message is None
