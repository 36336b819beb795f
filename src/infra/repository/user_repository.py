"""
User repository using SQLAlchemy ORM
"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from src.infra.models import UserModel, TransactionModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class UserRepository:
    """Repository for user database operations using SQLAlchemy ORM"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def normalize(wallet_address: str) -> str:
        return wallet_address.lower()

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id, populate_existing=True)

    async def get_by_wallet(self, wallet_address: str) -> Optional[UserModel]:
        stmt = (
            select(UserModel)
            .where(UserModel.wallet_address == self.normalize(wallet_address))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, wallet_address: str) -> UserModel:
        """
        Get existing user or create new one with an auto-generated name

        A concurrent insert for the same wallet trips the unique constraint;
        the row created by the other request is returned instead.
        """
        user = await self.get_by_wallet(wallet_address)
        if user:
            return user

        wallet = self.normalize(wallet_address)
        new_user = UserModel(
            name=f"user-{wallet}",
            wallet_address=wallet,
            balance=0
        )

        try:
            self.session.add(new_user)
            await self.session.commit()
            await self.session.refresh(new_user)
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                f"User already exists (race condition): {e.orig}",
                extra={"wallet_address": wallet}
            )
            user = await self.get_by_wallet(wallet)
            if user is None:
                raise
            return user

        logger.info(
            "New user created in database",
            extra={
                "wallet_address": wallet,
                "user_id": new_user.id
            }
        )
        return new_user

    async def update_name(self, wallet_address: str, name: str) -> Optional[UserModel]:
        user = await self.get_by_wallet(wallet_address)
        if user is None:
            return None
        user.name = name
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def list_transactions(self, user_id: int, limit: int = 10, offset: int = 0) -> List[TransactionModel]:
        """Newest first"""
        stmt = (
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
