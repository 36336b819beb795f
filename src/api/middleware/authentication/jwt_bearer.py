from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer

from src.core.exceptions.base import AuthenticationError
from src.core.logger.logger import get_logger
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.token import TokenPayload

logger = get_logger(__name__)


class CustomHTTPBearer(HTTPBearer):
    """
    Bearer token guard for protected routes.

    Missing, malformed, badly signed and expired tokens all raise the same
    AuthenticationError, so callers cannot tell them apart.
    """

    def __init__(self, jwt_service: Optional[JWTService] = None):
        super().__init__(auto_error=False)
        self.jwt_service = jwt_service or JWTService()

    async def __call__(self, request: Request) -> TokenPayload:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise AuthenticationError()

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            logger.info("Rejected malformed authorization header", extra={"path": request.url.path})
            raise AuthenticationError()

        return self.jwt_service.verify_access_token(parts[1])


jwt_bearer = CustomHTTPBearer()


async def get_current_wallet(payload: TokenPayload = Depends(jwt_bearer)) -> str:
    """Wallet address of the authenticated caller"""
    return payload.wallet_address
