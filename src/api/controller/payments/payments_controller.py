"""
Deposit controller: card deposits into the USD balance.
"""

from fastapi import APIRouter, Depends, Path, Query, status

from src.api.controller.payments.dto.input_dto import ConfirmDepositRequestDto, CreateDepositRequestDto
from src.api.middleware.authentication.jwt_bearer import get_current_wallet
from src.core.dependencies import get_deposit_service
from src.core.service.payments.deposit_service import DepositService
from src.core.service.payments.models import DepositConfirmed, DepositCreated, DepositPage, DepositView

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/deposits", response_model=DepositCreated, status_code=status.HTTP_201_CREATED)
async def create_deposit(
    request: CreateDepositRequestDto,
    wallet_address: str = Depends(get_current_wallet),
    deposit_service: DepositService = Depends(get_deposit_service)
) -> DepositCreated:
    """Create a payment intent; the client confirms it with the returned secret"""
    return await deposit_service.create_deposit(
        wallet_address,
        request.amount,
        currency=request.currency,
        description=request.description
    )


@router.post("/deposits/confirm", response_model=DepositConfirmed)
async def confirm_deposit(
    request: ConfirmDepositRequestDto,
    wallet_address: str = Depends(get_current_wallet),
    deposit_service: DepositService = Depends(get_deposit_service)
) -> DepositConfirmed:
    """
    Confirm the payment and credit the balance.

    Errors:
    - 400: payment not completed
    - 403: deposit belongs to another wallet
    - 404: unknown payment intent
    - 409: deposit already processed
    """
    return await deposit_service.confirm_deposit(
        wallet_address,
        request.payment_intent_id,
        request.payment_method_id
    )


@router.get("/deposits/{deposit_id}", response_model=DepositView)
async def get_deposit(
    deposit_id: int = Path(..., ge=1),
    wallet_address: str = Depends(get_current_wallet),
    deposit_service: DepositService = Depends(get_deposit_service)
) -> DepositView:
    return await deposit_service.get_deposit(wallet_address, deposit_id)


@router.get("/deposits", response_model=DepositPage)
async def list_deposits(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    wallet_address: str = Depends(get_current_wallet),
    deposit_service: DepositService = Depends(get_deposit_service)
) -> DepositPage:
    return await deposit_service.list_deposits(wallet_address, page=page, limit=limit)
