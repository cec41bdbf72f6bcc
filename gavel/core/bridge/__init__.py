"""
Gavel Bridge Module.

Entry point for bids relayed from other ledgers.
"""

from gavel.core.bridge.cross_chain import CrossChainBid, CrossChainBidHandler

__all__ = [
    "CrossChainBid",
    "CrossChainBidHandler",
]
