from datetime import datetime

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """JWT token payload structure"""
    sub: str = Field(..., description="Authenticated wallet address")
    exp: datetime = Field(..., description="Token expiration timestamp")
    iat: datetime = Field(..., description="Token issued at timestamp")
    jti: str = Field(..., description="Unique token identifier")

    @property
    def wallet_address(self) -> str:
        return self.sub


class IssuedToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the token expires


class SignInResult(BaseModel):
    """Outcome of a successful wallet sign-in"""
    message: str = "Sign-in successful"
    wallet_address: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
