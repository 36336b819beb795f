"""
User profile service
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import NotFoundError, ValidationError
from src.core.logger.logger import get_logger
from src.core.service.cache.cache_service import CacheService
from src.core.service.finance.blockchain_client import BlockchainClient
from src.core.service.finance.price_feed import PriceFeed
from src.core.service.ledger.balance_ledger import to_money
from src.core.service.users.models import Portfolio, TransactionList, TransactionView, UserProfile
from src.infra.config.settings import get_settings
from src.infra.models import UserModel
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

MAX_NAME_LENGTH = 100


class UserService:

    def __init__(
        self,
        session: AsyncSession,
        blockchain: Optional[BlockchainClient] = None,
        price_feed: Optional[PriceFeed] = None,
        cache: Optional[CacheService] = None,
        token_address: Optional[str] = None
    ):
        self.users = UserRepository(session)
        self.blockchain = blockchain
        self.price_feed = price_feed
        self.cache = cache
        self.token_address = token_address or settings.WBTC_TOKEN_ADDRESS

    async def get_profile(self, wallet_address: str) -> UserProfile:
        """Profile of the caller, creating the user on first access"""
        user = await self.users.get_or_create(wallet_address)
        return await self._build_profile(user)

    async def update_name(self, wallet_address: str, name: str) -> UserProfile:
        name = (name or "").strip()
        if not name or len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be between 1 and {MAX_NAME_LENGTH} characters")

        await self.users.get_or_create(wallet_address)
        user = await self.users.update_name(wallet_address, name)
        if user is None:
            raise NotFoundError("User not found")

        logger.info("User name updated", extra={"wallet_address": user.wallet_address})
        return await self._build_profile(user)

    async def get_transactions(self, wallet_address: str, limit: int = 10, offset: int = 0) -> TransactionList:
        user = await self.users.get_by_wallet(wallet_address)
        if user is None:
            return TransactionList(transactions=[], limit=limit, offset=offset)

        rows = await self.users.list_transactions(user.id, limit=limit, offset=offset)
        return TransactionList(
            transactions=[TransactionView.model_validate(row) for row in rows],
            limit=limit,
            offset=offset
        )

    async def _build_profile(self, user: UserModel) -> UserProfile:
        balance = to_money(user.balance)
        portfolio = await self._get_portfolio(user.wallet_address)

        total = balance
        for value in (portfolio.core_balance_in_usd, portfolio.wbtc_balance_in_usd):
            if value is not None:
                total += value

        return UserProfile(
            id=user.id,
            name=user.name,
            wallet_address=user.wallet_address,
            balance=balance,
            total_asset_in_usd=to_money(total),
            created_at=user.created_at,
            updated_at=user.updated_at,
            **portfolio.model_dump()
        )

    async def _get_portfolio(self, wallet_address: str) -> Portfolio:
        """On-chain balances, cached per wallet; failures degrade to empty fields"""
        if self.blockchain is None:
            return Portfolio()

        if self.cache is None:
            return await self._fetch_portfolio(wallet_address) or Portfolio()

        async def load():
            portfolio = await self._fetch_portfolio(wallet_address)
            return portfolio.model_dump(mode="json") if portfolio else None

        data = await self.cache.get_or_set(
            f"portfolio:{wallet_address.lower()}",
            settings.BALANCE_CACHE_TTL_SECONDS,
            load
        )
        return Portfolio.model_validate(data) if data else Portfolio()

    async def _fetch_portfolio(self, wallet_address: str) -> Optional[Portfolio]:
        """None when the chain is unreachable, so the failure is not cached"""
        portfolio = Portfolio()

        try:
            portfolio.core_balance = await self.blockchain.get_balance(wallet_address)
            if self.token_address:
                portfolio.wbtc_balance = await self.blockchain.get_token_balance(self.token_address, wallet_address)
        except Exception as e:
            logger.warning(
                f"Failed to fetch on-chain balances: {e}",
                extra={"wallet_address": wallet_address}
            )
            return None

        if self.price_feed is None:
            return portfolio

        portfolio.core_balance_in_usd = await self._value_in_usd(portfolio.core_balance, settings.NATIVE_SYMBOL)
        portfolio.wbtc_balance_in_usd = await self._value_in_usd(portfolio.wbtc_balance, "BTC")
        return portfolio

    async def _value_in_usd(self, amount: Optional[Decimal], symbol: str) -> Optional[Decimal]:
        if amount is None:
            return None
        try:
            quote = await self.price_feed.get_price(symbol)
        except Exception as e:
            logger.warning(f"Failed to price {symbol}: {e}", extra={"symbol": symbol})
            return None
        return to_money(amount * quote.value)
