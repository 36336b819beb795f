"""
Format validators for wallet addresses and signatures.
"""

import re
from typing import Optional

from src.core.exceptions.base import ValidationError
from src.core.exceptions.handler import ServiceErrorCode

EVM_ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')
EVM_SIGNATURE_PATTERN = re.compile(r'^0x[a-fA-F0-9]{130}$')


class AddressValidator:
    """Validators for blockchain addresses."""

    @staticmethod
    def is_evm_address(address: Optional[str]) -> bool:
        return bool(address) and bool(EVM_ADDRESS_PATTERN.match(address))

    @staticmethod
    def validate_wallet_address(address: Optional[str]) -> str:
        """Return the address unchanged or raise ValidationError"""
        if not address or not address.strip():
            raise ValidationError("Wallet address is required", code=ServiceErrorCode.INVALID_FORMAT)
        if not AddressValidator.is_evm_address(address):
            raise ValidationError("Invalid wallet address format", code=ServiceErrorCode.INVALID_FORMAT)
        return address


class SignatureValidator:
    """Validators for cryptographic signatures."""

    @staticmethod
    def validate_signature(signature: Optional[str]) -> str:
        """EVM signatures are 65 bytes: 0x followed by 130 hex characters"""
        if not signature or not signature.strip():
            raise ValidationError("Signature is required", code=ServiceErrorCode.INVALID_FORMAT)
        if not EVM_SIGNATURE_PATTERN.match(signature):
            raise ValidationError("Invalid signature format", code=ServiceErrorCode.INVALID_FORMAT)
        return signature
