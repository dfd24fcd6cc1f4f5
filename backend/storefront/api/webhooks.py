"""
Webhooks API Endpoints
Stripe payment events for storefront checkouts
"""
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request

from storefront.connectors.stripe_connector import WebhookSignatureError, verify_webhook_signature
from storefront.core.config import settings
from storefront.core.errors import AppError
from storefront.services.checkout_service import get_checkout_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature")
):
    """
    Receive a Stripe event

    The signature is checked against the raw body before anything is
    parsed. Events that do not concern a known order are acknowledged
    so Stripe does not retry them.
    """
    payload = await request.body()

    try:
        event = verify_webhook_signature(payload, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid webhook: {str(e)}")

    try:
        result = get_checkout_service().handle_webhook_event(event)
        return {"status": "success", "received": True, "data": result}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error handling Stripe event {event.get('id')}: {e}")
        raise HTTPException(status_code=500, detail=f"Error processing webhook: {str(e)}")
