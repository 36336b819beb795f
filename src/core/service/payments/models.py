"""Models for the deposit workflow."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.infra.models import DepositStatus


class DepositCreated(BaseModel):
    """Pending deposit with the client secret the frontend confirms against"""
    deposit_id: int
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: Decimal
    currency: str
    status: DepositStatus


class DepositConfirmed(BaseModel):
    success: bool = True
    deposit_id: int
    new_balance: Decimal
    transaction_id: int


class DepositView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payment_intent_id: str = Field(..., validation_alias="stripe_payment_intent_id")
    amount: Decimal
    currency: str
    status: DepositStatus
    created_at: datetime
    updated_at: datetime


class DepositPage(BaseModel):
    deposits: List[DepositView]
    total: int
    page: int
    total_pages: int
