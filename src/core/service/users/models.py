"""Models for user profile service."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.infra.models import TransactionType


class Portfolio(BaseModel):
    """On-chain holdings of a wallet; None where the chain or price feed was unavailable"""
    core_balance: Optional[Decimal] = None
    wbtc_balance: Optional[Decimal] = None
    core_balance_in_usd: Optional[Decimal] = None
    wbtc_balance_in_usd: Optional[Decimal] = None


class UserProfile(Portfolio):
    id: int
    name: str
    wallet_address: str
    balance: Decimal
    total_asset_in_usd: Decimal
    created_at: datetime
    updated_at: datetime


class TransactionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: TransactionType
    amount: Decimal
    description: Optional[str] = None
    reference_id: Optional[str] = None
    balance_after: Decimal
    btc_amount: Optional[Decimal] = None
    btc_price: Optional[Decimal] = None
    transaction_hash: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[dict] = Field(None, validation_alias="metadata_")
    created_at: datetime


class TransactionList(BaseModel):
    transactions: List[TransactionView]
    limit: int
    offset: int
