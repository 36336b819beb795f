"""Models for the finance services."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class SwapResult(BaseModel):
    transaction_hash: str
    btc_amount: Decimal
    btc_price: Decimal
    usd_amount: Decimal
    remaining_balance: Decimal


class BtcPrice(BaseModel):
    symbol: str = "BTC"
    price: Decimal
    timestamp: datetime
