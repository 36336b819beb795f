"""
Stripe webhook endpoint. Authenticated by the Stripe-Signature header, not a bearer token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from src.core.dependencies import get_deposit_service, get_payment_processor
from src.core.exceptions.base import ValidationError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.payments.deposit_service import DepositService
from src.core.service.payments.events import parse_event
from src.core.service.payments.stripe_client import PaymentProcessor

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    payment_processor: PaymentProcessor = Depends(get_payment_processor),
    deposit_service: DepositService = Depends(get_deposit_service)
):
    """
    Apply a payment event. Redeliveries of an already applied event are
    acknowledged without crediting again.
    """
    payload = await request.body()
    if not payload or not stripe_signature:
        raise ValidationError("Missing webhook payload or signature", code=ServiceErrorCode.INVALID_WEBHOOK)

    event = parse_event(payment_processor.verify_webhook_signature(payload, stripe_signature))
    logger.info("Stripe webhook received", extra={"event_id": event.event_id, "event_kind": event.kind})

    await deposit_service.handle_webhook_event(event)
    return {"received": True}
