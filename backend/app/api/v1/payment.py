import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import InputValidationError, PaymentError
from app.core.logging import security_logger
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.core.security import get_client_ip
from app.schemas.user import PaymentChargeRequest
from app.services.payment_service import create_charge, handle_webhook_event, verify_webhook_signature
from app.utils.sanitization import sanitize_email

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "x-cc-webhook-signature"


@router.post("/create-charge")
@limiter.limit(GENERAL_LIMIT)
async def create_payment_charge(request: Request, payload: PaymentChargeRequest):
    """
    Start a PLUS plan checkout and return the hosted payment page URL.
    """
    if not payload.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    try:
        email = sanitize_email(payload.email)
    except InputValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")

    try:
        url = await create_charge(email)
    except PaymentError as e:
        logger.error(f"Create charge error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to create payment charge", "message": str(e)},
        )

    return {"success": True, "url": url}


@router.post("/webhook")
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Receive signed charge events and upgrade the paying user to PLUS.
    """
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    body = await request.body()
    if not verify_webhook_signature(body, signature):
        security_logger.log_suspicious_activity(
            activity_type="invalid_webhook_signature",
            details={"path": request.url.path},
            ip_address=get_client_ip(request),
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        event = json.loads(body).get("event") or {}
        await handle_webhook_event(db, event)
    except Exception as e:
        logger.error(f"Webhook processing error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return {"success": True}
