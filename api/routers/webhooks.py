"""
Webhook Endpoints.

Stripe delivers checkout events here at least once. The raw body is needed
for signature verification, so this is the one async route; processing runs
in the threadpool like every other handler.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_webhook_service
from api.models import WebhookResponse
from domain.errors import WebhookSignatureError
from services.payment_webhook_service import PaymentWebhookService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/webhooks/stripe",
    response_model=WebhookResponse,
    summary="Stripe Webhook",
    description="Verify and process a Stripe checkout event. Redeliveries are acknowledged as duplicates."
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    service: PaymentWebhookService = Depends(get_webhook_service),
):
    """
    **Responses:**
    - 200 with `outcome` created | confirmed | duplicate | pending | failed | expired | ignored | rejected
    - 400 when the signature does not verify (nothing is processed)
    - 500 when storage fails, so Stripe retries the delivery
    """
    payload = await request.body()

    try:
        result = await run_in_threadpool(service.handle, payload, stripe_signature)
    except WebhookSignatureError:
        raise HTTPException(status_code=400, detail="Invalid signature")
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return WebhookResponse(
        received=result.received,
        event_type=result.event_type,
        outcome=result.outcome,
        order_id=result.order_id,
    )
