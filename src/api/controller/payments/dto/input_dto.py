"""
Input DTOs for deposit endpoints.
"""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class CreateDepositRequestDto(BaseModel):
    """DTO for deposit creation."""

    amount: Decimal = Field(
        ...,
        ge=1,
        le=10000,
        decimal_places=2,
        description="Amount to deposit in dollars, $1 to $10,000"
    )
    currency: Literal["usd"] = Field("usd", description="Only USD is supported")
    description: Optional[str] = Field(None, max_length=500)


class ConfirmDepositRequestDto(BaseModel):
    """DTO for deposit confirmation."""

    payment_intent_id: str = Field(..., min_length=1, description="Stripe payment intent id")
    payment_method_id: str = Field(..., min_length=1, description="Stripe payment method id")

    @field_validator('payment_intent_id', 'payment_method_id')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()
