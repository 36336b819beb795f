from typing import Any, Dict, Optional
from fastapi import status

from src.core.exceptions.handler import ServiceError, ServiceErrorCode


class ValidationError(ServiceError):
    """Malformed input; raised before any storage access"""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = ServiceErrorCode.INVALID_INPUT,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code=code, message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientFundsError(ValidationError):
    def __init__(self, message: str = "Insufficient balance", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code=ServiceErrorCode.INSUFFICIENT_FUNDS, details=details)


class PaymentNotCompletedError(ValidationError):
    def __init__(self, message: str = "Payment confirmation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code=ServiceErrorCode.PAYMENT_NOT_COMPLETED, details=details)


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class AuthenticationError(ServiceError):
    """Missing, invalid or expired credentials"""

    def __init__(self, message: str = "Unauthorized", code: str = ServiceErrorCode.UNAUTHORIZED):
        super().__init__(code=code, message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(ServiceError):
    """Authenticated caller does not own the resource"""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(code=ServiceErrorCode.FORBIDDEN, message=message, status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(ServiceError):
    def __init__(
        self,
        message: str = "Conflict",
        code: str = ServiceErrorCode.CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code=code, message=message, status_code=status.HTTP_409_CONFLICT, details=details)


class ExternalServiceError(ServiceError):
    """Payment processor, blockchain RPC or price feed failure; safe to retry"""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        code: str = ServiceErrorCode.SERVICE_UNAVAILABLE,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            context=context,
        )


class UnexpectedError(ServiceError):
    """Anything uncategorized; the caller only ever sees the generic message"""

    def __init__(self, message: str = "An unexpected error occurred. Please try again."):
        super().__init__(
            code=ServiceErrorCode.INTERNAL_ERROR,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
