"""
Stripe Client Helpers

Configures the stripe SDK from settings and normalizes the objects it
returns. Webhook payloads and API responses are handled as plain dicts
so the rest of the billing code doesn't depend on StripeObject behavior.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import stripe

from zaltyko.config import get_settings
from zaltyko.core.exceptions import ServiceUnavailableError


def get_stripe():
    """The configured stripe module, or 503 when no secret key is set."""
    settings = get_settings()
    if not settings.STRIPE_SECRET_KEY:
        raise ServiceUnavailableError("Stripe is not configured", code="STRIPE_NOT_CONFIGURED")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


def to_dict(obj: Any) -> Dict[str, Any]:
    """Plain dict from a StripeObject (or a dict, returned as is)."""
    if obj is None:
        return {}
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def metadata_value(metadata: Optional[Dict[str, Any]], *keys: str) -> Optional[str]:
    """First non-empty value among keys (camelCase and snake_case variants)."""
    if not metadata:
        return None
    for key in keys:
        value = metadata.get(key)
        if value:
            return str(value).strip() or None
    return None


def object_id(value: Any) -> Optional[str]:
    """Stripe fields are either an id string or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id")


def unix_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.utcfromtimestamp(int(value))
