"""
Finance controller: BTC price, USD to BTC swap and on-chain history.
"""

from typing import List

from fastapi import APIRouter, Depends

from src.api.controller.finance.dto.input_dto import SwapRequestDto
from src.api.middleware.authentication.jwt_bearer import get_current_wallet
from src.core.dependencies import get_history_service, get_swap_service
from src.core.service.finance.blockchain_client import EventLog
from src.core.service.finance.history_service import HistoryService
from src.core.service.finance.models import BtcPrice, SwapResult
from src.core.service.finance.swap_service import SwapService

router = APIRouter(prefix="/finance", tags=["Finance"])


@router.get("/btc-price", response_model=BtcPrice)
async def get_btc_price(
    wallet_address: str = Depends(get_current_wallet),
    swap_service: SwapService = Depends(get_swap_service)
) -> BtcPrice:
    return await swap_service.get_btc_price()


@router.post("/swap", response_model=SwapResult)
async def swap(
    request: SwapRequestDto,
    wallet_address: str = Depends(get_current_wallet),
    swap_service: SwapService = Depends(get_swap_service)
) -> SwapResult:
    """
    Swap USD balance for BTC sent to the caller's wallet.

    Errors:
    - 400: insufficient balance or amount below minimum
    - 404: user not found
    - 503: price feed or blockchain unavailable
    """
    return await swap_service.swap(wallet_address, request.amount)


@router.get("/stake-history", response_model=List[EventLog])
async def get_stake_history(
    wallet_address: str = Depends(get_current_wallet),
    history_service: HistoryService = Depends(get_history_service)
) -> List[EventLog]:
    return await history_service.get_stake_history(wallet_address)


@router.get("/collateral-deposit-history", response_model=List[EventLog])
async def get_collateral_deposit_history(
    wallet_address: str = Depends(get_current_wallet),
    history_service: HistoryService = Depends(get_history_service)
) -> List[EventLog]:
    return await history_service.get_collateral_history(wallet_address)
