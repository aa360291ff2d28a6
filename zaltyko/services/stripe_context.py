"""
Academy Context Resolution for Stripe Objects

Subscriptions are per user, but invoices and billing events are recorded
per academy. These helpers work out which academy (and tenant) a Stripe
object belongs to, from metadata first and from our own rows after.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from zaltyko.models.academy import Academy
from zaltyko.models.billing import Subscription
from zaltyko.services.stripe_client import get_stripe, metadata_value, object_id, to_dict


@dataclass
class AcademyContext:
    academy_id: Optional[str] = None
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None


def _ids_from_metadata(metadata: Optional[Dict[str, Any]]):
    return (
        metadata_value(metadata, "userId", "user_id"),
        metadata_value(metadata, "academyId", "academy_id"),
        metadata_value(metadata, "tenantId", "tenant_id"),
    )


def owner_academy(db: Session, user_id: str) -> Optional[Academy]:
    """Oldest academy owned by a user."""
    return db.query(Academy).filter(
        Academy.owner_id == user_id
    ).order_by(Academy.created_at).first()


def resolve_academy_tenant(db: Session, academy_id: Optional[str]) -> Optional[str]:
    if not academy_id:
        return None
    academy = db.query(Academy).filter(Academy.id == academy_id).first()
    return academy.tenant_id if academy else None


def context_from_subscription(db: Session, subscription: Dict[str, Any]) -> AcademyContext:
    user_id, academy_id, tenant_id = _ids_from_metadata(subscription.get("metadata"))

    if user_id:
        academy = owner_academy(db, user_id)
        if academy:
            return AcademyContext(academy.id, academy.tenant_id, user_id)

    if academy_id:
        return AcademyContext(academy_id, tenant_id or resolve_academy_tenant(db, academy_id), user_id)

    return AcademyContext(user_id=user_id)


def invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    """Subscription id of an invoice, across Stripe API versions."""
    subscription_id = object_id(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return object_id(details.get("subscription"))


def context_from_invoice(db: Session, invoice: Dict[str, Any]) -> AcademyContext:
    """
    Resolution order: invoice metadata, then our subscription row,
    then the subscription as Stripe knows it.
    """
    user_id, academy_id, tenant_id = _ids_from_metadata(invoice.get("metadata"))

    if academy_id and tenant_id:
        return AcademyContext(academy_id, tenant_id, user_id)

    subscription_id = invoice_subscription_id(invoice)
    if subscription_id:
        row = db.query(Subscription).filter(
            Subscription.stripe_subscription_id == subscription_id
        ).first()

        if row:
            user_id = row.user_id
            academy = owner_academy(db, row.user_id)
            if academy:
                academy_id, tenant_id = academy.id, academy.tenant_id
        else:
            remote = to_dict(get_stripe().Subscription.retrieve(subscription_id))
            remote_user, remote_academy, remote_tenant = _ids_from_metadata(remote.get("metadata"))
            user_id = user_id or remote_user
            academy_id = academy_id or remote_academy
            tenant_id = tenant_id or remote_tenant

            if user_id and not academy_id:
                academy = owner_academy(db, user_id)
                if academy:
                    academy_id, tenant_id = academy.id, academy.tenant_id

    if academy_id and not tenant_id:
        tenant_id = resolve_academy_tenant(db, academy_id)

    return AcademyContext(academy_id, tenant_id, user_id)
