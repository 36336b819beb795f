"""
Authentication controller: nonce issuance and wallet sign-in.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.api.controller.auth.dto.input_dto import SignInRequestDto
from src.api.controller.auth.dto.output_dto import NonceResponseDto, SignInResponseDto
from src.core.dependencies import get_auth_service
from src.core.service.auth.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/nonce", response_model=NonceResponseDto, status_code=status.HTTP_200_OK)
async def get_nonce(
    wallet_address: Optional[str] = Query(None, description="EVM wallet address"),
    auth_service: AuthService = Depends(get_auth_service)
) -> NonceResponseDto:
    """
    Issue a nonce for the wallet to sign.

    Any previously issued nonce for the same wallet stops being valid.
    """
    nonce = await auth_service.issue_nonce(wallet_address)
    return NonceResponseDto(nonce=nonce)


@router.post("/signin", response_model=SignInResponseDto, status_code=status.HTTP_200_OK)
async def sign_in(
    request: SignInRequestDto,
    auth_service: AuthService = Depends(get_auth_service)
) -> SignInResponseDto:
    """
    Exchange a signed nonce for a bearer token.

    Errors:
    - 400: missing or malformed wallet address / signature
    - 401: nonce missing, expired or already used; invalid signature
    - 503: nonce store unavailable
    """
    result = await auth_service.sign_in(request.wallet_address, request.signature)
    return SignInResponseDto(**result.model_dump())
