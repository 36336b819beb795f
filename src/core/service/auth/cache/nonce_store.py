from typing import Optional

import redis.asyncio as redis

from src.core.logger.logger import logger
from src.infra.config.settings import settings


# Deletes the key only while it still holds the nonce that was verified,
# so two sign-ins racing on the same nonce cannot both consume it.
COMPARE_AND_DELETE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class NonceStore:
    """Redis store for single-use sign-in nonces"""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.key_prefix = "auth:nonce:"
        self.ttl_seconds = ttl_seconds or settings.NONCE_EXPIRY_SECONDS

    def _get_key(self, wallet_address: str) -> str:
        """Get Redis key for wallet address"""
        return f"{self.key_prefix}{wallet_address.lower()}"

    async def save_nonce(self, wallet_address: str, nonce: str) -> None:
        """Store nonce with TTL, replacing any live nonce for the wallet"""
        await self.redis.set(self._get_key(wallet_address), nonce, ex=self.ttl_seconds)
        logger.debug(
            "Saved nonce",
            extra={"wallet_address": wallet_address, "ttl": self.ttl_seconds}
        )

    async def get_nonce(self, wallet_address: str) -> Optional[str]:
        """Get the live nonce for a wallet, None once expired or consumed"""
        data = await self.redis.get(self._get_key(wallet_address))
        if data is None:
            return None
        return data.decode() if isinstance(data, bytes) else data

    async def consume_nonce(self, wallet_address: str, nonce: str) -> bool:
        """
        Atomically delete the nonce if it is still the live one.

        Returns False when the nonce was already consumed or replaced.
        """
        deleted = await self.redis.eval(COMPARE_AND_DELETE_SCRIPT, 1, self._get_key(wallet_address), nonce)
        return bool(deleted)
