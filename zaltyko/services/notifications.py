"""
Billing Notifications

Emails academy owners about Stripe invoice outcomes.
One recipient failing doesn't stop the others.
"""
from typing import Any, Dict, List
from sqlalchemy.orm import Session

from zaltyko.models.academy import Academy, Membership
from zaltyko.models.user import User
from zaltyko.services.audit import log_audit
from zaltyko.services.email import send_email
from zaltyko.services.stripe_context import AcademyContext
from zaltyko.config import get_settings
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORT_EMAIL = "soporte@zaltyko.com"


def get_owner_emails(db: Session, academy_id: str) -> List[str]:
    """Owner addresses of an academy, support address when there are none."""
    rows = db.query(User.email).join(
        Membership, Membership.user_id == User.id
    ).filter(
        Membership.academy_id == academy_id,
        Membership.role == "owner"
    ).all()
    emails = [email for (email,) in rows if email]

    if not emails:
        academy = db.query(Academy).filter(Academy.id == academy_id).first()
        if academy and academy.owner:
            emails = [academy.owner.email]

    unique = list(dict.fromkeys(emails))
    return unique or [SUPPORT_EMAIL]


def notify_owners(db: Session, academy_id: str, subject: str, html: str, text: str) -> int:
    sent = 0
    for email in get_owner_emails(db, academy_id):
        try:
            if send_email(email, subject, html, text=text, reply_to=SUPPORT_EMAIL):
                sent += 1
        except Exception as e:
            logger.error(
                f"Error sending billing notification to {email}: {e}",
                extra={"academy_id": academy_id}
            )
    return sent


def _format_amount(invoice: Dict[str, Any]) -> str:
    amount = invoice.get("amount_paid") or invoice.get("amount_due") or 0
    currency = (invoice.get("currency") or "eur").upper()
    return f"{amount / 100:.2f} {currency}"


def send_invoice_notification(db: Session, event_type: str, invoice: Dict[str, Any],
                              context: AcademyContext) -> None:
    if not context.academy_id or not context.tenant_id:
        return

    number = invoice.get("number") or invoice.get("id")
    link = invoice.get("hosted_invoice_url") or invoice.get("invoice_pdf") or f"{get_settings().APP_URL}/billing"

    if event_type == "invoice.paid":
        amount = _format_amount(invoice)
        subject = "Zaltyko · Pago recibido"
        text = f"Se registró el pago de la factura {number} por {amount}."
        html = (
            f"<h2>Zaltyko · Pago recibido</h2>"
            f"<p>Se registró el pago de la factura <strong>{number}</strong>.</p>"
            f"<p>Importe cobrado: <strong>{amount}</strong>.</p>"
            f"<p><a href=\"{link}\">Ver factura</a></p>"
        )
        notify_owners(db, context.academy_id, subject, html, text)
        log_audit(
            db, context.tenant_id, None, "billing.invoice_paid",
            resource_type="invoice", meta={"invoiceId": invoice.get("id"), "currency": invoice.get("currency")},
            commit=True,
        )
    elif event_type in ("invoice.payment_failed", "invoice.payment_action_required"):
        subject = "Zaltyko · Acción requerida en factura"
        text = f"La factura {number} requiere tu revisión."
        html = (
            f"<h2>Zaltyko · Acción requerida</h2>"
            f"<p>No se pudo completar el cobro de la factura <strong>{number}</strong>.</p>"
            f"<p>Revisa el método de pago desde el portal de facturación.</p>"
        )
        notify_owners(db, context.academy_id, subject, html, text)
        log_audit(
            db, context.tenant_id, None, "billing.invoice_issue",
            resource_type="invoice",
            meta={"invoiceId": invoice.get("id"), "status": invoice.get("status"),
                  "amountDue": invoice.get("amount_due")},
            commit=True,
        )
