"""
Gavel Auction Module.

This module provides the per-instance auction state machine:
- Escrowed bidding against a USD reserve price
- Exactly-once settlement
- Pull-payment refunds and proceeds
"""

from gavel.core.auction.auction import (
    Auction,
    AuctionDetails,
    AuctionState,
    non_reentrant,
)

__all__ = [
    "Auction",
    "AuctionDetails",
    "AuctionState",
    "non_reentrant",
]
