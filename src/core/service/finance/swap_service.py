"""
Swap workflow: spend USD balance on wrapped BTC delivered on-chain.

The token transfer is sent before the balance is debited. A debit that
fails after a successful transfer cannot be undone here; it is logged as a
reconciliation record carrying the transaction hash and re-raised.
"""

from decimal import Decimal, ROUND_DOWN
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import (
    ExternalServiceError,
    InsufficientFundsError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from src.core.exceptions.handler import ServiceError
from src.core.logger.logger import get_logger
from src.core.service.finance.blockchain_client import BlockchainClient
from src.core.service.finance.models import BtcPrice, SwapResult
from src.core.service.finance.price_feed import PriceFeed
from src.core.service.ledger.balance_ledger import BalanceLedger, to_money
from src.infra.config.settings import get_settings
from src.infra.models import TransactionType
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

MIN_SWAP_AMOUNT = Decimal("0.001")
BTC_QUANTUM = Decimal("0.00000001")
BTC_SYMBOL = "BTC"


class SwapService:

    def __init__(
        self,
        session: AsyncSession,
        price_feed: PriceFeed,
        blockchain: BlockchainClient,
        token_address: Optional[str] = None
    ):
        self.session = session
        self.price_feed = price_feed
        self.blockchain = blockchain
        self.token_address = token_address or settings.WBTC_TOKEN_ADDRESS
        self.users = UserRepository(session)

    async def get_btc_price(self) -> BtcPrice:
        quote = await self.price_feed.get_price(BTC_SYMBOL)
        return BtcPrice(symbol=quote.symbol, price=quote.value, timestamp=quote.timestamp)

    async def swap(self, wallet_address: str, amount_usd: Decimal) -> SwapResult:
        """
        Convert `amount_usd` of the user's balance to BTC at the current price

        Raises:
            ValidationError: amount below the minimum
            NotFoundError: unknown user
            InsufficientFundsError: balance below amount; nothing is transferred
            ExternalServiceError: price feed or blockchain unavailable
        """
        try:
            amount = Decimal(str(amount_usd))
            if amount < MIN_SWAP_AMOUNT:
                raise ValidationError(f"Amount must be at least {MIN_SWAP_AMOUNT}")
            usd_amount = to_money(amount)
            if usd_amount <= 0:
                raise ValidationError("Amount is too small to swap")

            user = await self.users.get_by_wallet(wallet_address)
            if user is None:
                raise NotFoundError("User not found")
            user_id = user.id
            recipient = user.wallet_address

            if to_money(user.balance) < usd_amount:
                logger.warning(
                    "Swap rejected: insufficient balance",
                    extra={"wallet_address": recipient, "amount": str(usd_amount)}
                )
                raise InsufficientFundsError()

            if not self.token_address:
                raise ExternalServiceError("Swap token is not configured")

            quote = await self.price_feed.get_price(BTC_SYMBOL)
            btc_amount = (usd_amount / quote.value).quantize(BTC_QUANTUM, rounding=ROUND_DOWN)
            if btc_amount <= 0:
                raise ValidationError("Amount is too small to swap")

            transaction_hash = await self.blockchain.transfer(self.token_address, recipient, btc_amount)

            entry = await self._debit(
                user_id=user_id,
                usd_amount=usd_amount,
                btc_amount=btc_amount,
                btc_price=to_money(quote.value),
                transaction_hash=transaction_hash,
                wallet_address=recipient
            )

            logger.info(
                "Swap completed",
                extra={
                    "wallet_address": recipient,
                    "usd_amount": str(usd_amount),
                    "btc_amount": str(btc_amount),
                    "transaction_hash": transaction_hash
                }
            )

            return SwapResult(
                transaction_hash=transaction_hash,
                btc_amount=btc_amount,
                btc_price=quote.value,
                usd_amount=usd_amount,
                remaining_balance=entry.balance
            )

        except ServiceError:
            raise
        except Exception as e:
            logger.exception(
                f"Unexpected error during swap: {e}",
                extra={"wallet_address": wallet_address}
            )
            raise UnexpectedError()

    async def _debit(
        self,
        user_id: int,
        usd_amount: Decimal,
        btc_amount: Decimal,
        btc_price: Decimal,
        transaction_hash: str,
        wallet_address: str
    ):
        try:
            entry = await BalanceLedger(self.session).debit(
                user_id,
                usd_amount,
                description="Swap USD to BTC",
                transaction_type=TransactionType.SWAP,
                reference_id=transaction_hash,
                btc_amount=btc_amount,
                btc_price=btc_price,
                transaction_hash=transaction_hash,
                status="COMPLETED"
            )
            await self.session.commit()
            return entry
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Swap transfer sent but balance debit failed, reconciliation required: {e}",
                extra={
                    "wallet_address": wallet_address,
                    "user_id": user_id,
                    "usd_amount": str(usd_amount),
                    "btc_amount": str(btc_amount),
                    "transaction_hash": transaction_hash
                },
                exc_info=True
            )
            raise
