"""
Tagged variants for the payment processor webhook events the deposit workflow handles.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentSucceededEvent(BaseModel):
    kind: Literal["payment_succeeded"] = "payment_succeeded"
    event_id: str
    payment_intent_id: str


class PaymentFailedEvent(BaseModel):
    kind: Literal["payment_failed"] = "payment_failed"
    event_id: str
    payment_intent_id: str
    failure_message: Optional[str] = None


class UnhandledEvent(BaseModel):
    kind: Literal["unhandled"] = "unhandled"
    event_id: str
    event_type: str


WebhookEvent = Union[PaymentSucceededEvent, PaymentFailedEvent, UnhandledEvent]


def parse_event(payload: Dict[str, Any]) -> WebhookEvent:
    """
    Map a decoded webhook payload to its variant.

    Fields are read only after the event type is known; a handled type
    without a payment intent id is treated as unhandled.
    """
    event_id = str(payload.get("id") or "")
    event_type = str(payload.get("type") or "")

    if event_type in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        data = payload.get("data")
        intent = data.get("object") if isinstance(data, dict) else None
        intent_id = intent.get("id") if isinstance(intent, dict) else None

        if isinstance(intent_id, str) and intent_id:
            if event_type == PAYMENT_SUCCEEDED:
                return PaymentSucceededEvent(event_id=event_id, payment_intent_id=intent_id)

            last_error = intent.get("last_payment_error")
            return PaymentFailedEvent(
                event_id=event_id,
                payment_intent_id=intent_id,
                failure_message=last_error.get("message") if isinstance(last_error, dict) else None
            )

    return UnhandledEvent(event_id=event_id, event_type=event_type)
