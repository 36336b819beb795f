"""
Output DTOs for authentication API endpoints.
"""

from pydantic import BaseModel, Field


class NonceResponseDto(BaseModel):
    """DTO for nonce issuance response."""

    nonce: str = Field(..., description="Single-use nonce to sign with the wallet")


class SignInResponseDto(BaseModel):
    """DTO for successful sign-in response."""

    message: str = Field(default="Sign-in successful")
    wallet_address: str = Field(..., description="Authenticated wallet address")
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")


class HealthCheckResponseDto(BaseModel):
    status: str
    services: dict
    timestamp: str
