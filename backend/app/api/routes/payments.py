"""Payment endpoints: intent creation and the Stripe webhook."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from app.api.deps import get_payment_service
from app.core.errors import ValidationError, WorkflowError
from app.core.money import to_minor
from app.models.api import PaymentIntentRequest, PaymentIntentResponse, WebhookResponse
from app.services import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-intent", response_model=PaymentIntentResponse)
def create_intent(
    request: PaymentIntentRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResponse:
    """
    Create a payment intent for an invoice balance or a free amount.
    """
    try:
        if request.invoice_id is not None:
            result = payment_service.create_invoice_payment_intent(request.invoice_id)
        elif request.amount is not None:
            result = payment_service.create_payment_intent(
                to_minor(request.amount), currency=request.currency, metadata=request.metadata
            )
        else:
            raise ValidationError("Either invoice_id or amount is required", public_message="Amount is required")
        return PaymentIntentResponse(client_secret=result.client_secret, payment_intent_id=result.payment_intent_id)
    except WorkflowError:
        raise
    except Exception:
        logger.error("Payment intent creation failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/webhook", response_model=WebhookResponse)
async def webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """
    Verify and reconcile a Stripe event. Re-deliveries are acknowledged without effect.
    """
    payload = await request.body()
    try:
        event = payment_service.verify_event(payload, stripe_signature)
        outcome = payment_service.reconcile(event)
        return WebhookResponse(outcome=outcome.outcome)
    except WorkflowError:
        raise
    except Exception:
        logger.error("Webhook processing failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
