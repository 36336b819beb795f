import binascii
from eth_account.messages import encode_defunct
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3

from src.core.logger.logger import logger


class SignatureVerificationError(Exception):
    """Raised when the address or signature cannot be parsed at all"""


class SignatureVerificationService:
    """Service for verifying Ethereum personal-sign (EIP-191) signatures"""

    def verify(self, address: str, message: str, signature: str) -> bool:
        """
        Verify that `signature` over `message` was produced by `address`

        Args:
            address: The address that claims to have signed the message
            message: The message that was signed
            signature: Hex-encoded 65 byte signature

        Returns:
            bool: True if the recovered signer matches the claimed address

        Raises:
            SignatureVerificationError: malformed address or signature
        """
        try:
            checksum_address = Web3.to_checksum_address(address.lower())
        except ValueError as e:
            raise SignatureVerificationError("Invalid Ethereum address format") from e

        try:
            signature_bytes = HexBytes(signature if signature.startswith("0x") else "0x" + signature)
        except (ValueError, binascii.Error) as e:
            raise SignatureVerificationError("Invalid signature format") from e

        try:
            recovered_address = Account.recover_message(encode_defunct(text=message), signature=signature_bytes)
        except Exception as e:
            raise SignatureVerificationError(f"Signature recovery failed: {e}") from e

        is_valid = recovered_address.lower() == checksum_address.lower()
        if not is_valid:
            logger.warning(
                "Recovered address does not match claimed address",
                extra={
                    "wallet_address": address,
                    "recovered_address": recovered_address
                }
            )
        return is_valid
