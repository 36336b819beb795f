from typing import List, Optional

from src.core.exceptions.base import ExternalServiceError
from src.core.logger.logger import get_logger
from src.core.service.auth.utils.validators import AddressValidator
from src.core.service.finance.abis import LENDING_POOL_ABI, STAKING_VAULT_ABI
from src.core.service.finance.blockchain_client import BlockchainClient, EventLog
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class HistoryService:
    """Per-wallet staking and collateral history read from contract events"""

    def __init__(
        self,
        blockchain: BlockchainClient,
        staking_vault_address: Optional[str] = None,
        lending_pool_address: Optional[str] = None,
        from_block: Optional[int] = None
    ):
        self.blockchain = blockchain
        self.staking_vault_address = staking_vault_address or settings.STAKING_VAULT_ADDRESS
        self.lending_pool_address = lending_pool_address or settings.LENDING_POOL_ADDRESS
        self.from_block = from_block if from_block is not None else settings.HISTORY_FROM_BLOCK

    async def get_stake_history(self, wallet_address: str) -> List[EventLog]:
        AddressValidator.validate_wallet_address(wallet_address)
        if not self.staking_vault_address:
            raise ExternalServiceError("Staking vault address not configured")

        history = await self.blockchain.get_event_logs(
            self.staking_vault_address,
            STAKING_VAULT_ABI,
            "Staked",
            "amount",
            wallet_address,
            self.from_block
        )
        logger.info(
            "Fetched stake history",
            extra={"wallet_address": wallet_address, "count": len(history)}
        )
        return history

    async def get_collateral_history(self, wallet_address: str) -> List[EventLog]:
        AddressValidator.validate_wallet_address(wallet_address)
        if not self.lending_pool_address:
            raise ExternalServiceError("Lending pool address not configured")

        history = await self.blockchain.get_event_logs(
            self.lending_pool_address,
            LENDING_POOL_ABI,
            "CollateralDeposited",
            "btcAmount",
            wallet_address,
            self.from_block
        )
        logger.info(
            "Fetched collateral deposit history",
            extra={"wallet_address": wallet_address, "count": len(history)}
        )
        return history
