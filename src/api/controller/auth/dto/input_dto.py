"""
Input DTOs for authentication API endpoints.

Format checks on the address and signature live in AuthService so that
malformed sign-in input is rejected with a 400 before any store access.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SignInRequestDto(BaseModel):
    """DTO for sign-in request."""

    wallet_address: Optional[str] = Field(
        None,
        max_length=100,
        description="Wallet address that signed the nonce"
    )
    signature: Optional[str] = Field(
        None,
        max_length=200,
        description="0x-prefixed personal-sign signature over the nonce"
    )

    @field_validator('wallet_address', 'signature')
    @classmethod
    def strip_value(cls, v):
        return v.strip() if v else v
