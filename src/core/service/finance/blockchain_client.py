"""Blockchain access for balances, ERC-20 settlement transfers and event history."""

import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from eth_account import Account
from pydantic import BaseModel
from web3 import AsyncWeb3, Web3

from src.core.exceptions.base import ExternalServiceError
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.finance.abis import ERC20_ABI
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

TOKEN_DECIMALS = 18
WEI_PER_TOKEN = Decimal(10) ** TOKEN_DECIMALS


def to_wei(amount: Decimal) -> int:
    return int((Decimal(str(amount)) * WEI_PER_TOKEN).to_integral_value())


def from_wei(value: int) -> Decimal:
    return Decimal(value) / WEI_PER_TOKEN


class EventLog(BaseModel):
    transaction_hash: str
    block_number: int
    amount: Decimal


class BlockchainClient(ABC):

    @abstractmethod
    async def get_balance(self, address: str) -> Decimal:
        """Native coin balance in whole units"""
        ...

    @abstractmethod
    async def get_token_balance(self, token_address: str, address: str) -> Decimal:
        """ERC-20 balance in whole units"""
        ...

    @abstractmethod
    async def transfer(self, token_address: str, to_address: str, amount: Decimal) -> str:
        """Send `amount` tokens from the vault; returns the transaction hash"""
        ...

    @abstractmethod
    async def get_event_logs(
        self,
        contract_address: str,
        abi: List[Dict[str, Any]],
        event_name: str,
        amount_field: str,
        user_address: str,
        from_block: int
    ) -> List[EventLog]:
        ...


class Web3BlockchainClient(BlockchainClient):

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        chain_id: Optional[int] = None,
        private_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.rpc_url = rpc_url or settings.RPC_URL
        self.chain_id = chain_id or settings.CHAIN_ID
        self.timeout_seconds = timeout_seconds or settings.RPC_TIMEOUT_SECONDS
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.rpc_url))

        # Serializes nonce assignment across concurrent transfers from the vault
        self._send_lock = asyncio.Lock()

        self.account = None
        key = private_key or settings.VAULT_PRIVATE_KEY
        if key:
            try:
                self.account = Account.from_key(key)
                logger.info(f"Blockchain client initialized with vault address: {self.account.address}")
            except Exception as e:
                logger.error(f"Failed to initialize vault account: {e}")
        else:
            logger.warning("VAULT_PRIVATE_KEY not configured - transfers disabled")

    async def _call(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("Blockchain RPC timeout", extra={"operation": operation})
            raise ExternalServiceError(
                "Blockchain network timed out",
                code=ServiceErrorCode.TIMEOUT,
                context={"operation": operation}
            )
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Blockchain RPC failed: {e}", extra={"operation": operation})
            raise ExternalServiceError("Blockchain network unavailable", context={"operation": operation})

    async def get_balance(self, address: str) -> Decimal:
        balance = await self._call(
            "get_balance",
            self.w3.eth.get_balance(Web3.to_checksum_address(address))
        )
        return from_wei(balance)

    async def get_token_balance(self, token_address: str, address: str) -> Decimal:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
        balance = await self._call(
            "get_token_balance",
            contract.functions.balanceOf(Web3.to_checksum_address(address)).call()
        )
        return from_wei(balance)

    async def transfer(self, token_address: str, to_address: str, amount: Decimal) -> str:
        if not self.account:
            raise ExternalServiceError("Vault account is not configured")

        contract = self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
        amount_wei = to_wei(amount)

        async def prepare() -> Dict[str, Any]:
            nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
            # build_transaction estimates gas, which simulates the transfer first
            return await contract.functions.transfer(
                Web3.to_checksum_address(to_address), amount_wei
            ).build_transaction({
                "from": self.account.address,
                "nonce": nonce,
                "chainId": self.chain_id,
            })

        async with self._send_lock:
            transaction = await self._call("transfer", prepare())
            signed = self.account.sign_transaction(transaction)
            # Known before broadcast so a timed out send can still be traced
            tx_hash = Web3.to_hex(signed.hash)
            try:
                await self._call("send_raw_transaction", self.w3.eth.send_raw_transaction(signed.raw_transaction))
            except ExternalServiceError as e:
                if e.code == ServiceErrorCode.TIMEOUT:
                    logger.error(
                        "Transfer broadcast timed out, transaction may still be mined: reconciliation required",
                        extra={
                            "to_address": to_address,
                            "amount_wei": str(amount_wei),
                            "transaction_hash": tx_hash
                        }
                    )
                raise

        logger.info(
            "Token transfer sent",
            extra={"to_address": to_address, "amount_wei": str(amount_wei), "transaction_hash": tx_hash}
        )
        return tx_hash

    async def get_event_logs(
        self,
        contract_address: str,
        abi: List[Dict[str, Any]],
        event_name: str,
        amount_field: str,
        user_address: str,
        from_block: int
    ) -> List[EventLog]:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi)
        event = getattr(contract.events, event_name)

        logs = await self._call(
            "get_logs",
            event.get_logs(
                argument_filters={"user": Web3.to_checksum_address(user_address)},
                from_block=from_block,
                to_block="latest"
            )
        )

        return [
            EventLog(
                transaction_hash=Web3.to_hex(log["transactionHash"]),
                block_number=log["blockNumber"],
                amount=from_wei(log["args"].get(amount_field, 0))
            )
            for log in logs
        ]
