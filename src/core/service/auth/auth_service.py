import uuid
from typing import Optional

from src.core.exceptions.base import AuthenticationError, ExternalServiceError, UnexpectedError, ValidationError
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.nonce_store import NonceStore
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.token import SignInResult
from src.core.service.auth.signature_verification import SignatureVerificationService
from src.core.service.auth.utils.validators import AddressValidator, SignatureValidator

logger = get_logger(__name__)

NONCE_ERROR_MESSAGE = "Nonce not found or expired. Please request a new nonce"


class AuthService:
    """Challenge-response wallet authentication built on single-use nonces"""

    def __init__(
        self,
        nonce_store: NonceStore,
        jwt_service: JWTService,
        signature_service: Optional[SignatureVerificationService] = None,
        user_repository=None
    ):
        self.nonce_store = nonce_store
        self.jwt_service = jwt_service
        self.signature_service = signature_service or SignatureVerificationService()
        self.user_repository = user_repository

    async def issue_nonce(self, wallet_address: str) -> str:
        """Issue a fresh nonce for the wallet, replacing any live one"""
        AddressValidator.validate_wallet_address(wallet_address)

        nonce = str(uuid.uuid4())
        try:
            await self.nonce_store.save_nonce(wallet_address, nonce)
        except Exception as e:
            logger.error(
                f"Failed to store nonce: {e}",
                extra={"wallet_address": wallet_address}
            )
            raise ExternalServiceError("Authentication service temporarily unavailable")

        logger.info("Issued nonce", extra={"wallet_address": wallet_address})
        return nonce

    async def sign_in(self, wallet_address: str, signature: str) -> SignInResult:
        """
        Verify a signed nonce and issue a bearer token

        Args:
            wallet_address: Address that claims to have signed the nonce
            signature: 0x-prefixed 65 byte personal-sign signature over the nonce

        Raises:
            ValidationError: malformed input, raised before any store access
            AuthenticationError: missing/expired/consumed nonce or invalid signature
            ExternalServiceError: nonce store unavailable
        """
        try:
            if not wallet_address or not signature:
                raise ValidationError("Wallet address and signature are required")
            AddressValidator.validate_wallet_address(wallet_address)
            SignatureValidator.validate_signature(signature)

            try:
                nonce = await self.nonce_store.get_nonce(wallet_address)
            except Exception as e:
                logger.error(
                    f"Failed to retrieve nonce from cache: {e}",
                    extra={"wallet_address": wallet_address}
                )
                raise ExternalServiceError("Authentication service temporarily unavailable")

            if not nonce:
                raise AuthenticationError(NONCE_ERROR_MESSAGE, code=ServiceErrorCode.NONCE_NOT_FOUND)

            try:
                is_valid = self.signature_service.verify(wallet_address, nonce, signature)
            except Exception as e:
                logger.error(
                    f"Signature verification failed: {e}",
                    extra={"wallet_address": wallet_address}
                )
                raise AuthenticationError("Invalid signature", code=ServiceErrorCode.INVALID_SIGNATURE)

            if not is_valid:
                logger.warning(
                    "Invalid signature attempt",
                    extra={"wallet_address": wallet_address}
                )
                raise AuthenticationError("Invalid signature", code=ServiceErrorCode.INVALID_SIGNATURE)

            await self._consume_nonce(wallet_address, nonce)
            await self._record_login(wallet_address)

            token = self.jwt_service.create_access_token(wallet_address)

            logger.info("Successful sign-in", extra={"wallet_address": wallet_address})

            return SignInResult(
                wallet_address=wallet_address,
                access_token=token.access_token,
                token_type=token.token_type,
                expires_in=token.expires_in
            )

        except ServiceError:
            raise
        except Exception as e:
            logger.exception(
                f"Unexpected error during sign-in: {e}",
                extra={"wallet_address": wallet_address}
            )
            raise UnexpectedError("An unexpected error occurred during authentication")

    async def _consume_nonce(self, wallet_address: str, nonce: str) -> None:
        """Remove the nonce so the signature cannot be replayed"""
        try:
            consumed = await self.nonce_store.consume_nonce(wallet_address, nonce)
        except Exception as e:
            # Authentication already succeeded; the TTL reclaims the key
            logger.warning(
                f"Failed to delete nonce from cache: {e}",
                extra={"wallet_address": wallet_address}
            )
            return

        if not consumed:
            logger.warning(
                "Nonce consumed by a concurrent sign-in",
                extra={"wallet_address": wallet_address}
            )
            raise AuthenticationError(NONCE_ERROR_MESSAGE, code=ServiceErrorCode.NONCE_NOT_FOUND)

    async def _record_login(self, wallet_address: str) -> None:
        """Create the user row on first sign-in (non-blocking)"""
        if not self.user_repository:
            return
        try:
            await self.user_repository.get_or_create(wallet_address)
        except Exception as db_error:
            logger.error(
                f"Failed to ensure user on sign-in: {db_error}",
                extra={"wallet_address": wallet_address}
            )
