"""
Email Delivery (Mailgun HTTP API)

Sending is a logged no-op when MAILGUN_API_KEY or MAILGUN_DOMAIN is missing,
so local development and tests never hit the network.
"""
from typing import Optional
import httpx
from email_validator import validate_email, EmailNotValidError

from zaltyko.config import get_settings
from zaltyko.core.exceptions import ValidationError
from zaltyko.utils.logging import get_logger, log_external_service

logger = get_logger(__name__)

MAILGUN_TIMEOUT = 10.0


def normalize_email(address: str) -> str:
    """Lowercased, validated address. Raises ValidationError if invalid."""
    try:
        result = validate_email(address.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {address}", details={"reason": str(e)})
    return result.normalized.lower()


def is_configured() -> bool:
    settings = get_settings()
    return bool(settings.MAILGUN_API_KEY and settings.MAILGUN_DOMAIN)


def send_email(
    to: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> bool:
    """
    Send one email.

    Returns True when Mailgun accepted it, False when sending is disabled.
    Raises httpx.HTTPError when Mailgun rejects the request.
    """
    if not subject or not subject.strip():
        raise ValidationError("Email subject is required")
    if not html or not html.strip():
        raise ValidationError("Email body is required")

    recipient = normalize_email(to)

    if not is_configured():
        logger.info(f"Mailgun not configured, skipping email '{subject}' to {recipient}")
        return False

    settings = get_settings()
    data = {
        "from": settings.EMAIL_FROM,
        "to": [recipient],
        "subject": subject.strip(),
        "html": html.strip(),
    }
    if text:
        data["text"] = text.strip()
    if reply_to:
        data["h:Reply-To"] = normalize_email(reply_to)

    try:
        response = httpx.post(
            f"{settings.MAILGUN_BASE_URL}/{settings.MAILGUN_DOMAIN}/messages",
            auth=("api", settings.MAILGUN_API_KEY),
            data=data,
            timeout=MAILGUN_TIMEOUT,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        log_external_service("mailgun", "send", logger, success=False, error=str(e), subject=subject)
        raise

    log_external_service("mailgun", "send", logger, subject=subject)
    return True
