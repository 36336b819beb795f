"""
User profile controller.
"""

from fastapi import APIRouter, Depends, Query

from src.api.controller.users.dto.input_dto import UpdateUserRequestDto
from src.api.middleware.authentication.jwt_bearer import get_current_wallet
from src.core.dependencies import get_user_service
from src.core.service.users.models import TransactionList, UserProfile
from src.core.service.users.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
async def get_me(
    wallet_address: str = Depends(get_current_wallet),
    user_service: UserService = Depends(get_user_service)
) -> UserProfile:
    """
    Profile of the authenticated wallet with live on-chain balances.

    The user is created on first access. On-chain fields are null when the
    chain or the price feed is unavailable.
    """
    return await user_service.get_profile(wallet_address)


@router.patch("/me", response_model=UserProfile)
async def update_me(
    request: UpdateUserRequestDto,
    wallet_address: str = Depends(get_current_wallet),
    user_service: UserService = Depends(get_user_service)
) -> UserProfile:
    return await user_service.update_name(wallet_address, request.name)


@router.get("/me/transactions", response_model=TransactionList)
async def get_my_transactions(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    wallet_address: str = Depends(get_current_wallet),
    user_service: UserService = Depends(get_user_service)
) -> TransactionList:
    """Ledger history, newest first"""
    return await user_service.get_transactions(wallet_address, limit=limit, offset=offset)
