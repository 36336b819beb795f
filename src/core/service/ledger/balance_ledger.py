"""
Balance ledger - the only code path that mutates a user's balance.

Every mutation is a single conditional UPDATE ... RETURNING on the user row
followed by an append to the transactions table, both inside the caller's
database transaction. The ledger never commits: the workflow that owns the
business justification (a completed deposit, a settled swap) commits the
balance change together with its own state change, or rolls everything back.

Not exposed to request handlers; only DepositService and SwapService build one.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import InsufficientFundsError, NotFoundError, ValidationError
from src.core.logger.logger import get_logger
from src.infra.models import TransactionModel, TransactionType, UserModel, utcnow

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def to_money(amount) -> Decimal:
    """Quantize to 2 fractional digits"""
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LedgerEntry:
    balance: Decimal
    transaction_id: int


class BalanceLedger:

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        value = to_money(amount)
        if value <= 0:
            raise ValidationError("Amount must be positive")
        return value

    async def credit(
        self,
        user_id: int,
        amount,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LedgerEntry:
        """Increase the balance and append a DEPOSIT entry"""
        value = self._validate_amount(amount)

        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(balance=UserModel.balance + value, updated_at=utcnow())
            .returning(UserModel.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await self.session.execute(stmt)).scalar_one_or_none()
        if new_balance is None:
            raise NotFoundError("User not found")

        return await self._append(
            user_id=user_id,
            transaction_type=TransactionType.DEPOSIT,
            amount=value,
            balance_after=to_money(new_balance),
            description=description or "Balance deposit",
            reference_id=reference_id,
            metadata=metadata
        )

    async def debit(
        self,
        user_id: int,
        amount,
        description: Optional[str] = None,
        transaction_type: TransactionType = TransactionType.WITHDRAWAL,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **swap_fields
    ) -> LedgerEntry:
        """
        Decrease the balance and append an entry of `transaction_type`

        The balance check lives in the UPDATE's WHERE clause, so concurrent
        debits are serialized by the row lock and can never overdraw.

        Raises:
            NotFoundError: no such user
            InsufficientFundsError: balance below amount
        """
        value = self._validate_amount(amount)
        if TransactionType(transaction_type).is_credit:
            raise ValueError(f"{transaction_type} is not a debit type")

        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id, UserModel.balance >= value)
            .values(balance=UserModel.balance - value, updated_at=utcnow())
            .returning(UserModel.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await self.session.execute(stmt)).scalar_one_or_none()

        if new_balance is None:
            if await self.session.get(UserModel, user_id) is None:
                raise NotFoundError("User not found")
            logger.warning(
                "Debit rejected: insufficient balance",
                extra={"user_id": user_id, "amount": str(value)}
            )
            raise InsufficientFundsError()

        return await self._append(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=value,
            balance_after=to_money(new_balance),
            description=description or "Balance withdrawal",
            reference_id=reference_id,
            metadata=metadata,
            **swap_fields
        )

    async def _append(
        self,
        user_id: int,
        transaction_type: TransactionType,
        amount: Decimal,
        balance_after: Decimal,
        **fields
    ) -> LedgerEntry:
        entry = TransactionModel(
            user_id=user_id,
            type=transaction_type,
            amount=amount,
            balance_after=balance_after,
            description=fields.pop("description", None),
            reference_id=fields.pop("reference_id", None),
            metadata_=fields.pop("metadata", None),
            **fields
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            "Ledger entry appended",
            extra={
                "user_id": user_id,
                "transaction_id": entry.id,
                "transaction_type": TransactionType(transaction_type).value,
                "amount": str(amount),
                "balance_after": str(balance_after)
            }
        )
        return LedgerEntry(balance=balance_after, transaction_id=entry.id)
