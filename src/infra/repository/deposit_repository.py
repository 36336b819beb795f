"""
Deposit repository using SQLAlchemy ORM
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.infra.models import DepositModel, DepositStatus, utcnow
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class DepositRepository:
    """Repository for deposit database operations using SQLAlchemy ORM"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: int,
        payment_intent_id: str,
        amount: Decimal,
        currency: str,
        client_secret: Optional[str],
        metadata: Optional[Dict[str, Any]] = None
    ) -> DepositModel:
        deposit = DepositModel(
            user_id=user_id,
            stripe_payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            status=DepositStatus.PENDING,
            stripe_client_secret=client_secret,
            metadata_=metadata
        )
        self.session.add(deposit)
        await self.session.commit()
        await self.session.refresh(deposit)
        return deposit

    async def get_by_intent_id(self, payment_intent_id: str) -> Optional[DepositModel]:
        stmt = (
            select(DepositModel)
            .options(selectinload(DepositModel.user))
            .where(DepositModel.stripe_payment_intent_id == payment_intent_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user(self, deposit_id: int, user_id: int) -> Optional[DepositModel]:
        stmt = select(DepositModel).where(
            DepositModel.id == deposit_id,
            DepositModel.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[DepositModel], int]:
        stmt = (
            select(DepositModel)
            .where(DepositModel.user_id == user_id)
            .order_by(DepositModel.created_at.desc(), DepositModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(DepositModel).where(DepositModel.user_id == user_id)

        deposits = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar_one()
        return deposits, total

    async def transition_status(
        self,
        deposit_id: int,
        to_status: DepositStatus,
        from_statuses: Iterable[DepositStatus]
    ) -> bool:
        """
        Move a deposit to `to_status` only if it is currently in one of `from_statuses`.

        The check and the write are one UPDATE statement; it does not commit.
        Returns False if another caller already moved the deposit.
        """
        stmt = (
            update(DepositModel)
            .where(
                DepositModel.id == deposit_id,
                DepositModel.status.in_(list(from_statuses))
            )
            .values(status=to_status, updated_at=utcnow())
            .returning(DepositModel.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
