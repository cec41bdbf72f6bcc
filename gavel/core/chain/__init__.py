"""Ledger substrate: clock, native balances, contracts, events, atomicity"""
from gavel.core.chain.contract import (
    Contract,
    Ownable,
    atomic,
    checked_address,
    external_call,
)
from gavel.core.chain.events import Event, Subscription
from gavel.core.chain.ledger import Chain, Receipt

__all__ = [
    "Contract",
    "atomic",
    "checked_address",
    "external_call",
    "Ownable",
    "Event",
    "Subscription",
    "Chain",
    "Receipt",
]
