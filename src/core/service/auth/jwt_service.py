import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from src.core.exceptions.base import AuthenticationError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.token import TokenPayload, IssuedToken
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class JWTService:
    """Issues and verifies bearer tokens whose subject is the wallet address"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None
    ):
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.access_token_expire_minutes = expire_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, wallet_address: str, expires_delta: Optional[timedelta] = None) -> IssuedToken:
        """Sign an access token for the wallet"""
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.access_token_expire_minutes)

        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + expires_delta

        to_encode = {
            "sub": wallet_address,
            "iat": issued_at,
            "exp": expires_at,
            "jti": str(uuid.uuid4()),
        }

        encoded_jwt = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

        return IssuedToken(
            access_token=encoded_jwt,
            expires_in=int(expires_delta.total_seconds())
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        """
        Verify a JWT token and return its payload.

        Every failure raises the same AuthenticationError; the reason is only logged.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]}
            )
            payload.setdefault("jti", "")
            return TokenPayload(**payload)

        except ExpiredSignatureError:
            logger.info("Token expired")
            raise AuthenticationError()

        except (InvalidTokenError, ValueError) as e:
            logger.warning(
                "Invalid token",
                extra={"error": str(e)}
            )
            raise AuthenticationError()
