"""
USD spot prices from the Alchemy prices API, cached for a short TTL
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
from pydantic import BaseModel

from src.core.exceptions.base import ExternalServiceError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.http_client import create_client
from src.core.logger.logger import get_logger
from src.core.service.cache.cache_service import CacheService
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class PriceQuote(BaseModel):
    symbol: str
    value: Decimal
    timestamp: datetime


class PriceFeed(ABC):

    @abstractmethod
    async def get_price(self, symbol: str) -> PriceQuote:
        """Current USD price for `symbol`; raises ExternalServiceError when unavailable"""
        ...


class AlchemyPriceFeed(PriceFeed):

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cache: Optional[CacheService] = None,
        cache_ttl_seconds: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key or settings.ALCHEMY_API_KEY
        self.base_url = base_url or settings.ALCHEMY_PRICES_URL
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds or settings.PRICE_CACHE_TTL_SECONDS
        self.http_client = http_client or create_client("price")

    async def close(self):
        await self.http_client.aclose()

    async def get_price(self, symbol: str) -> PriceQuote:
        symbol = symbol.upper()
        if self.cache is None:
            return await self._fetch(symbol)

        async def load():
            return (await self._fetch(symbol)).model_dump(mode="json")

        cached = await self.cache.get_or_set(f"price:{symbol}", self.cache_ttl_seconds, load)
        return PriceQuote.model_validate(cached)

    async def _fetch(self, symbol: str) -> PriceQuote:
        if not self.api_key:
            raise ExternalServiceError("Price feed is not configured")

        try:
            response = await self.http_client.get(
                self.base_url,
                params={"symbols": symbol},
                headers={"Authorization": f"Bearer {self.api_key}"}
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException:
            logger.error("Price feed timeout", extra={"symbol": symbol})
            raise ExternalServiceError("Price feed timed out", code=ServiceErrorCode.TIMEOUT)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Price feed request failed: {e}", extra={"symbol": symbol})
            raise ExternalServiceError("Price feed unavailable")

        try:
            price = body["data"][0]["prices"][0]
            value = Decimal(str(price["value"]))
        except (KeyError, IndexError, TypeError, InvalidOperation):
            logger.error("Unexpected price feed response", extra={"symbol": symbol})
            raise ExternalServiceError("Price feed returned no price")

        if value <= 0:
            raise ExternalServiceError("Price feed returned no price")

        logger.info("Fetched price", extra={"symbol": symbol, "price": str(value)})
        return PriceQuote(symbol=symbol, value=value, timestamp=datetime.now(timezone.utc))
