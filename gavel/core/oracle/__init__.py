"""
Gavel Oracle Module.

Converts payment-asset amounts into USD for reserve price checks.
"""

from gavel.core.oracle.feed import (
    MockPriceFeed,
    PriceFeed,
    RoundData,
)
from gavel.core.oracle.price_oracle import (
    PriceOracle,
    NATIVE_ASSET,
    NATIVE_DECIMALS,
    USD_DECIMALS,
    DEFAULT_STALENESS_BOUND,
)

__all__ = [
    "MockPriceFeed",
    "PriceFeed",
    "RoundData",
    "PriceOracle",
    "NATIVE_ASSET",
    "NATIVE_DECIMALS",
    "USD_DECIMALS",
    "DEFAULT_STALENESS_BOUND",
]
