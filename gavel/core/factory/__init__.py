"""
Gavel Factory Module.

Auction creation, the auction registry and platform configuration.
"""

from gavel.core.factory.auction_factory import (
    DEFAULT_MIN_DURATION,
    MAX_PAGE_SIZE,
    AuctionFactory,
    FactoryConfig,
)

__all__ = [
    "AuctionFactory",
    "FactoryConfig",
    "DEFAULT_MIN_DURATION",
    "MAX_PAGE_SIZE",
]
