"""
PLUS subscriptions paid through Coinbase Commerce.

A charge is created for an email address; when Coinbase confirms it, the
signed webhook upgrades the user with that email to PLUS.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import utcnow
from app.core.exceptions import PaymentError
from app.core.security import verify_signature
from app.models.user import User, UserType

settings = get_settings()

logger = logging.getLogger(__name__)

CHARGE_NAME = "AI Job Master Plus - Monthly Subscription"
CHARGE_DESCRIPTION = "Plus plan subscription at $5/month"
PLUS_PLAN = "PLUS"

EVENT_CHARGE_CONFIRMED = "charge:confirmed"
EVENT_CHARGE_FAILED = "charge:failed"


def build_charge_payload(email: str) -> Dict[str, Any]:
    redirect_url = f"{settings.app_url}/auth/payment-success?email={quote(email, safe='')}"
    return {
        "name": CHARGE_NAME,
        "description": CHARGE_DESCRIPTION,
        "local_price": {"amount": settings.plus_price_usd, "currency": "USD"},
        "pricing_type": "fixed_price",
        "metadata": {
            "email": email,
            "plan": PLUS_PLAN,
            "created_at": utcnow().isoformat(),
        },
        "redirect_url": redirect_url,
        "cancel_url": f"{settings.app_url}/auth/payment-failed",
    }


async def create_charge(email: str) -> str:
    """
    Create a PLUS charge and return its hosted checkout URL.

    Raises:
        PaymentError: Missing API key, unreachable API, error response or no hosted URL
    """
    if not settings.coinbase_commerce_api_key:
        raise PaymentError("Coinbase Commerce API key is not configured")

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{settings.coinbase_api_url}/charges/",
                json=build_charge_payload(email),
                headers={"X-CC-Api-Key": settings.coinbase_commerce_api_key},
            )
    except httpx.HTTPError as e:
        logger.error(f"Coinbase API request failed: {e}")
        raise PaymentError(f"Coinbase API request failed: {e}") from e

    if response.status_code >= 400:
        try:
            error_message = response.json().get("error", {}).get("message", "Unknown error")
        except ValueError:
            error_message = "Unknown error"
        logger.error(f"Coinbase API error {response.status_code}: {error_message}")
        raise PaymentError(f"Coinbase API error: {response.status_code} - {error_message}")

    data = response.json().get("data") or {}
    hosted_url = data.get("hosted_url")
    if not hosted_url:
        raise PaymentError("No hosted_url in Coinbase response")

    logger.info(f"Created Coinbase charge {data.get('id')}")
    return hosted_url


def verify_webhook_signature(payload: bytes, signature: Optional[str]) -> bool:
    """Check the ``X-CC-Webhook-Signature`` HMAC-SHA256 hex digest."""
    if not signature or not settings.coinbase_webhook_secret:
        return False
    return verify_signature(payload, signature, settings.coinbase_webhook_secret)


async def handle_webhook_event(db: AsyncSession, event: Dict[str, Any]) -> Optional[str]:
    """
    Apply a webhook event.

    Returns the email of the upgraded user, or None when nothing changed.
    """
    event_type = event.get("type")
    data = event.get("data") or {}
    metadata = data.get("metadata") or {}
    email = metadata.get("email")

    if event_type == EVENT_CHARGE_CONFIRMED:
        if not email or metadata.get("plan") != PLUS_PLAN:
            logger.info("Skipping charge:confirmed - missing email or plan metadata")
            return None

        result = await db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()
        if user is None:
            logger.error(f"Charge {data.get('id')} confirmed for unknown user {email}")
            return None

        user.user_type = UserType.PLUS
        logger.info(f"User {email} upgraded to PLUS, charge ID: {data.get('id')}")
        return email

    if event_type == EVENT_CHARGE_FAILED:
        logger.warning(f"Payment failed for {email or 'unknown email'}")

    return None
