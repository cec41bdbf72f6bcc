"""
Gavel - USD-reserve auction settlement engine.

A ledger-simulated auction protocol integrating:
- Per-auction escrow state machine with pull-payment settlement
- Price oracle converting bids into a USD unit of account
- Auction factory with an append-only instance registry
- Cross-chain bid entry point
"""

__version__ = "0.1.0"
