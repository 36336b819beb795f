from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.infra.config.settings import settings
from src.infra.config.redis import get_redis
from src.infra.database import get_database_manager
from src.core.logger.logger import get_logger
from src.api.router import health, auth, users, payments, finance, webhook
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler
from src.core.service.cache.cache_service import CacheService
from src.core.service.finance.blockchain_client import Web3BlockchainClient
from src.core.service.finance.price_feed import AlchemyPriceFeed
from src.core.service.payments.stripe_client import StripeClient

logger = get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
Neobank API - wallet sign-in, USD balance, card deposits and BTC swaps.

## Services
- **Authentication**: challenge-response sign-in with an EVM wallet
- **Users**: profile with on-chain portfolio and ledger history
- **Payments**: card deposits through Stripe
- **Finance**: USD to BTC swap settled on-chain, staking and collateral history

## Authentication
All protected endpoints require JWT Bearer token authentication.
        """,
        version=settings.APP_VERSION,
        docs_url="/",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(StarletteHTTPException, GlobalErrorHandler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(finance.router, prefix="/api/v1")
    app.include_router(webhook.router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info(
            "Starting API Gateway",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
        )

        # External clients are shared by every request
        app.state.payment_processor = StripeClient()
        app.state.blockchain_client = Web3BlockchainClient()
        app.state.price_feed = AlchemyPriceFeed(cache=CacheService(await get_redis()))

        try:
            await get_database_manager().create_tables()
        except Exception as e:
            logger.error(f"Failed to initialize database on startup: {str(e)}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(
            "Shutting down API Gateway",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
        )
        await app.state.payment_processor.close()
        await app.state.price_feed.close()
        await get_database_manager().close()

    return app
