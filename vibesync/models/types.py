"""
Standard type definitions for database models.

Provides consistent types for on-chain amounts and identifiers.
"""

from sqlalchemy import DECIMAL, String

from vibesync.config.constants import AMOUNT_PRECISION, AMOUNT_SCALE

# On-chain money type, exact for any uint256 amount with 0..AMOUNT_SCALE decimals
ChainAmountType = DECIMAL(AMOUNT_PRECISION, AMOUNT_SCALE)

# Lowercase 0x-prefixed address
AddressType = String(42)

# 0x-prefixed 32-byte transaction hash
TxHashType = String(66)
