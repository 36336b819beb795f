"""
FastAPI dependency injection functions.
Clean, maintainable dependency resolution using FastAPI's native DI system.

External client handles are built once at startup (see src/app.py) and
read from app.state; everything bound to a database session is built
per request.
"""

from fastapi import Depends, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from src.infra.config.redis import get_redis
from src.infra.database import get_async_session
from src.core.service.auth.auth_service import AuthService
from src.core.service.auth.cache.nonce_store import NonceStore
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.signature_verification import SignatureVerificationService
from src.core.service.cache.cache_service import CacheService
from src.core.service.finance.blockchain_client import BlockchainClient
from src.core.service.finance.history_service import HistoryService
from src.core.service.finance.price_feed import PriceFeed
from src.core.service.finance.swap_service import SwapService
from src.core.service.payments.deposit_service import DepositService
from src.core.service.payments.stripe_client import PaymentProcessor
from src.core.service.users.user_service import UserService
from src.infra.repository.user_repository import UserRepository


async def get_redis_client() -> Redis:
    """Get Redis client dependency."""
    return await get_redis()


def get_payment_processor(request: Request) -> PaymentProcessor:
    return request.app.state.payment_processor


def get_blockchain_client(request: Request) -> BlockchainClient:
    return request.app.state.blockchain_client


def get_price_feed(request: Request) -> PriceFeed:
    return request.app.state.price_feed


async def get_cache_service(redis_client: Redis = Depends(get_redis_client)) -> CacheService:
    return CacheService(redis_client)


async def get_auth_service(
    redis_client: Redis = Depends(get_redis_client),
    session: AsyncSession = Depends(get_async_session)
) -> AuthService:
    """Get auth service with Redis nonce store and user repository."""
    return AuthService(
        nonce_store=NonceStore(redis_client),
        jwt_service=JWTService(),
        signature_service=SignatureVerificationService(),
        user_repository=UserRepository(session)
    )


async def get_deposit_service(
    session: AsyncSession = Depends(get_async_session),
    payment_processor: PaymentProcessor = Depends(get_payment_processor)
) -> DepositService:
    return DepositService(session, payment_processor)


async def get_swap_service(
    session: AsyncSession = Depends(get_async_session),
    price_feed: PriceFeed = Depends(get_price_feed),
    blockchain: BlockchainClient = Depends(get_blockchain_client)
) -> SwapService:
    return SwapService(session, price_feed, blockchain)


async def get_history_service(blockchain: BlockchainClient = Depends(get_blockchain_client)) -> HistoryService:
    return HistoryService(blockchain)


async def get_user_service(
    session: AsyncSession = Depends(get_async_session),
    blockchain: BlockchainClient = Depends(get_blockchain_client),
    price_feed: PriceFeed = Depends(get_price_feed),
    cache: CacheService = Depends(get_cache_service)
) -> UserService:
    return UserService(session, blockchain=blockchain, price_feed=price_feed, cache=cache)
