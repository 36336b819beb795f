"""
Input DTOs for finance endpoints.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class SwapRequestDto(BaseModel):
    """DTO for USD to BTC swap. The recipient is always the authenticated wallet."""

    amount: Decimal = Field(..., ge=Decimal("0.001"), description="Amount in USD to swap for BTC")
