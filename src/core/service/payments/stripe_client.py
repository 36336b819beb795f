"""
Stripe payment processor adapter over the REST API
"""

import hashlib
import hmac
import json
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from src.core.exceptions.base import ExternalServiceError, ValidationError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.http_client import create_client
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class PaymentIntent(BaseModel):
    id: str
    status: str
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class PaymentProcessor(ABC):
    """Payment processor operations the deposit workflow relies on"""

    @abstractmethod
    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentIntent:
        ...

    @abstractmethod
    async def confirm_intent(self, payment_intent_id: str, payment_method_id: str) -> PaymentIntent:
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature_header: str) -> Dict[str, Any]:
        """Return the decoded event if the signature is authentic"""
        ...


def to_minor_units(amount: Decimal) -> int:
    """Dollars to cents"""
    return int((Decimal(str(amount)) * 100).to_integral_value())


class StripeClient(PaymentProcessor):

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        api_base: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")
        self.tolerance_seconds = tolerance_seconds or settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        self.http_client = http_client or create_client("stripe")

    async def close(self):
        await self.http_client.aclose()

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentIntent:
        form = {
            "amount": str(to_minor_units(amount)),
            "currency": currency,
            "payment_method_types[]": "card",
        }
        for key, value in metadata.items():
            if value is not None:
                form[f"metadata[{key}]"] = str(value)

        return await self._post("/payment_intents", form)

    async def confirm_intent(self, payment_intent_id: str, payment_method_id: str) -> PaymentIntent:
        return await self._post(
            f"/payment_intents/{payment_intent_id}/confirm",
            {"payment_method": payment_method_id}
        )

    async def _post(self, path: str, form: Dict[str, str]) -> PaymentIntent:
        if not self.secret_key:
            raise ExternalServiceError("Payment processor is not configured")

        url = f"{self.api_base}{path}"
        try:
            response = await self.http_client.post(
                url,
                data=form,
                headers={"Authorization": f"Bearer {self.secret_key}"}
            )
        except httpx.TimeoutException:
            logger.error("Stripe request timeout", extra={"path": path})
            raise ExternalServiceError(
                "Payment processor timed out",
                code=ServiceErrorCode.TIMEOUT,
                context={"path": path}
            )
        except httpx.RequestError as e:
            logger.error("Stripe connection error", extra={"path": path, "error": str(e)})
            raise ExternalServiceError("Payment processor unavailable", context={"path": path})

        if response.status_code >= 500:
            logger.error(
                "Stripe returned server error",
                extra={"path": path, "status_code": response.status_code}
            )
            raise ExternalServiceError("Payment processor unavailable", context={"path": path})

        try:
            body = response.json()
        except ValueError:
            logger.error(
                "Non-JSON response from Stripe",
                extra={"path": path, "status_code": response.status_code, "response_preview": response.text[:200]}
            )
            raise ExternalServiceError("Payment processor returned an invalid response")

        if response.status_code >= 400:
            error = body.get("error") or {}
            logger.warning(
                "Stripe rejected request",
                extra={
                    "path": path,
                    "status_code": response.status_code,
                    "stripe_error_code": error.get("code"),
                    "stripe_error_type": error.get("type")
                }
            )
            raise ValidationError(
                error.get("message") or "Payment was rejected",
                code=ServiceErrorCode.PAYMENT_REJECTED
            )

        intent = PaymentIntent.model_validate(body)
        logger.info(
            "Stripe payment intent updated",
            extra={"path": path, "payment_intent_id": intent.id, "intent_status": intent.status}
        )
        return intent

    def verify_webhook_signature(self, payload: bytes, signature_header: str) -> Dict[str, Any]:
        """
        Verify a `Stripe-Signature` header (`t=<ts>,v1=<hex>[,v1=...]`)

        The signed string is `<ts>.<raw body>`, HMAC-SHA256 with the endpoint
        secret. Events older than the tolerance are rejected as replays.

        Raises:
            ValidationError: missing, malformed, stale or wrong signature
        """
        if not self.webhook_secret:
            raise ExternalServiceError("Webhook verification is not configured")

        timestamp = None
        signatures = []
        for item in (signature_header or "").split(","):
            key, _, value = item.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)

        if not timestamp or not timestamp.isdigit() or not signatures:
            raise ValidationError("Invalid webhook signature header", code=ServiceErrorCode.INVALID_WEBHOOK)

        if abs(time.time() - int(timestamp)) > self.tolerance_seconds:
            raise ValidationError("Webhook timestamp outside tolerance", code=ServiceErrorCode.INVALID_WEBHOOK)

        signed_payload = timestamp.encode() + b"." + payload
        expected = hmac.new(self.webhook_secret.encode(), signed_payload, hashlib.sha256).hexdigest()

        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            logger.warning("Webhook signature mismatch")
            raise ValidationError("Invalid webhook signature", code=ServiceErrorCode.INVALID_WEBHOOK)

        try:
            event = json.loads(payload)
        except ValueError:
            raise ValidationError("Invalid webhook payload", code=ServiceErrorCode.INVALID_WEBHOOK)

        if not isinstance(event, dict):
            raise ValidationError("Invalid webhook payload", code=ServiceErrorCode.INVALID_WEBHOOK)
        return event
