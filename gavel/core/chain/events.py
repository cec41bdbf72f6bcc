"""
Events - notifications emitted by contracts for off-chain observers.

Events are appended to the chain's log as operations run and are published
to subscribers only once the outermost atomic operation commits. A rolled
back operation leaves no events behind.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class Event:
    """
    A single emitted notification.
    
    Attributes:
        name: Event name (e.g. "BidPlaced", "AuctionEnded")
        address: Address of the emitting contract
        args: Event fields
        timestamp: Ledger time at emission
        index: Position in the chain's event log
    """
    name: str
    address: str
    args: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0
    index: int = 0
    
    def __getitem__(self, key: str) -> Any:
        return self.args[key]


@dataclass
class Subscription:
    """A subscriber callback, optionally filtered by event name and emitter."""
    callback: Callable[[Event], None]
    name: Optional[str] = None
    address: Optional[str] = None
    
    def matches(self, event: Event) -> bool:
        if self.name is not None and event.name != self.name:
            return False
        if self.address is not None and event.address != self.address:
            return False
        return True
