"""
Chain - serialized, all-or-nothing execution substrate for Gavel.

Conceptual Background:
---------------------
The auction engine assumes a ledger that:

1. Executes every operation to completion, one at a time
2. Either commits all of an operation's effects or none of them
3. Holds native-currency balances and deployed contracts
4. Keeps a log of emitted events for off-chain observers
5. Provides a clock that gates time-based transitions

Atomicity:
---------
`atomic()` takes a savepoint of every piece of ledger state (native
balances, deployer nonces, deployed contracts and their state, event log
length) and restores it if an exception leaves the block. Savepoints nest,
so an inner failure that an outer operation handles rolls back only the
inner work. The lock is re-entrant: a contract calling another contract
stays inside the same serialized unit.

Time is deliberately outside savepoints: a failed operation does not
rewind the clock.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from gavel.core.chain.contract import Contract, external_call
from gavel.core.chain.events import Event, Subscription
from gavel.core.errors import (
    GavelError,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    InvalidTime,
    ReasonCode,
    UnknownContract,
)
from gavel.crypto import contract_address
from gavel.utils.logger import get_logger
from gavel.utils.validation import validate_address, validate_amount

logger = get_logger("chain")


# =============================================================================
# Receipts and Savepoints
# =============================================================================


@dataclass
class Receipt:
    """
    Outcome of a single operation run through `Chain.transact`.
    
    On failure, `code` and `error` carry the rejection reason and no state
    has changed.
    """
    success: bool
    error: str = ""
    code: Optional[ReasonCode] = None
    return_value: Any = None
    events: List[Event] = field(default_factory=list)
    timestamp: int = 0


@dataclass
class _Savepoint:
    balances: Dict[str, int]
    nonces: Dict[str, int]
    contracts: Dict[str, Contract]
    states: Dict[str, Dict[str, Any]]
    event_count: int


# =============================================================================
# Chain
# =============================================================================


class Chain:
    """
    In-process ledger with serialized, atomic execution.
    
    Attributes:
        chain_id: Identifier of this ledger (used by cross-chain messages)
        balances: Native-currency balance per address
        nonces: Deployment counter per deployer
        contracts: Deployed contracts by address
        events: Committed (and in-flight) event log
    """
    
    def __init__(self, start_time: Optional[int] = None, chain_id: int = 1):
        """
        Initialize the chain.
        
        Args:
            start_time: Initial ledger time in seconds. None = wall clock.
            chain_id: Identifier of this ledger
        """
        self.chain_id = chain_id
        self._now = int(start_time if start_time is not None else time.time())
        
        self.balances: Dict[str, int] = {}
        self.nonces: Dict[str, int] = {}
        self.contracts: Dict[str, Contract] = {}
        self.events: List[Event] = []
        
        self._lock = threading.RLock()
        self._savepoints: List[_Savepoint] = []
        self._subscriptions: List[Subscription] = []
        self._published = 0
    
    # =========================================================================
    # Clock
    # =========================================================================
    
    @property
    def now(self) -> int:
        """Current ledger time (seconds)."""
        return self._now
    
    def advance(self, seconds: int) -> int:
        """Move the clock forward by `seconds`. Returns the new time."""
        if seconds < 0:
            raise InvalidTime(f"Cannot advance by {seconds}s")
        with self._lock:
            self._now += seconds
            return self._now
    
    def set_time(self, timestamp: int) -> None:
        """Move the clock to `timestamp` (never backwards)."""
        with self._lock:
            if timestamp < self._now:
                raise InvalidTime(f"{timestamp} is before current time {self._now}")
            self._now = timestamp
    
    # =========================================================================
    # Atomic Execution
    # =========================================================================
    
    @contextmanager
    def atomic(self) -> Iterator["Chain"]:
        """
        Run the enclosed block as one all-or-nothing unit.
        
        Raises whatever the block raises, after restoring the savepoint.
        """
        with self._lock:
            savepoint = self._take_savepoint()
            self._savepoints.append(savepoint)
            try:
                yield self
            except BaseException:
                self._savepoints.pop()
                self._restore(savepoint)
                raise
            self._savepoints.pop()
            if not self._savepoints:
                self._publish()
    
    def transact(self, fn: Callable, *args, **kwargs) -> Receipt:
        """
        Run one operation and report its outcome as a receipt.
        
        Engine rejections become failed receipts; anything else propagates.
        
        Args:
            fn: Bound contract method (or any callable touching the chain)
            
        Returns:
            Receipt with the return value and emitted events
        """
        with self._lock:
            first_event = len(self.events)
            try:
                with self.atomic():
                    result = fn(*args, **kwargs)
            except GavelError as e:
                logger.debug(f"Rejected {getattr(fn, '__qualname__', fn)}: {e}")
                return Receipt(
                    success=False,
                    error=e.message,
                    code=e.code,
                    timestamp=self._now,
                )
            return Receipt(
                success=True,
                return_value=result,
                events=self.events[first_event:],
                timestamp=self._now,
            )
    
    def _take_savepoint(self) -> _Savepoint:
        return _Savepoint(
            balances=dict(self.balances),
            nonces=dict(self.nonces),
            contracts=dict(self.contracts),
            states={addr: c.export_state() for addr, c in self.contracts.items()},
            event_count=len(self.events),
        )
    
    def _restore(self, savepoint: _Savepoint) -> None:
        self.balances = savepoint.balances
        self.nonces = savepoint.nonces
        self.contracts = savepoint.contracts
        for addr, state in savepoint.states.items():
            self.contracts[addr].import_state(state)
        del self.events[savepoint.event_count:]
    
    # =========================================================================
    # Contracts
    # =========================================================================
    
    def register_contract(self, contract: Contract, deployer: str) -> str:
        """
        Assign an address to a newly deployed contract.
        
        Returns:
            The contract's address
        """
        with self._lock:
            nonce = self.nonces.get(deployer, 0)
            address = contract_address(deployer, nonce)
            self.nonces[deployer] = nonce + 1
            self.contracts[address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {address}")
        return address
    
    def get_contract(self, address: str) -> Contract:
        """Resolve a deployed contract."""
        contract = self.contracts.get(address.lower())
        if contract is None:
            raise UnknownContract(f"No contract at {address}")
        return contract
    
    def is_contract(self, address: str) -> bool:
        return address.lower() in self.contracts
    
    # =========================================================================
    # Native Currency
    # =========================================================================
    
    def balance_of(self, address: str) -> int:
        """Native balance of an address."""
        return self.balances.get(address.lower(), 0)
    
    def fund(self, address: str, amount: int) -> None:
        """Credit native currency out of thin air (genesis allocation / faucet)."""
        valid, err = validate_amount(amount)
        if not valid:
            raise InvalidAmount(err)
        with self.atomic():
            address = address.lower()
            self.balances[address] = self.balances.get(address, 0) + amount
    
    def transfer_native(self, src: str, dst: str, amount: int) -> None:
        """
        Move native currency between addresses.
        
        If `dst` is a contract defining `receive(sender, amount)`, the hook
        runs after the credit; a failing hook aborts the transfer.
        """
        valid, err = validate_amount(amount)
        if not valid:
            raise InvalidAmount(err)
        valid, err = validate_address(dst, "recipient")
        if not valid:
            raise InvalidAddress(err)
        
        with self.atomic():
            src, dst = src.lower(), dst.lower()
            balance = self.balances.get(src, 0)
            if balance < amount:
                raise InsufficientBalance(f"{src} has {balance}, needs {amount}")
            self.balances[src] = balance - amount
            self.balances[dst] = self.balances.get(dst, 0) + amount
            
            hook = getattr(self.contracts.get(dst), "receive", None)
            if hook is not None:
                external_call(hook, src, amount)
    
    # =========================================================================
    # Events
    # =========================================================================
    
    def emit(self, address: str, name: str, args: Dict[str, Any]) -> Event:
        """Append an event to the log."""
        event = Event(
            name=name,
            address=address,
            args=dict(args),
            timestamp=self._now,
            index=len(self.events),
        )
        self.events.append(event)
        return event
    
    def subscribe(
        self,
        callback: Callable[[Event], None],
        name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Subscription:
        """Register an observer for committed events."""
        subscription = Subscription(callback=callback, name=name, address=address)
        self._subscriptions.append(subscription)
        return subscription
    
    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.remove(subscription)
    
    def get_events(
        self,
        name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> List[Event]:
        """Query the event log."""
        return [
            e for e in self.events
            if (name is None or e.name == name)
            and (address is None or e.address == address)
        ]
    
    def _publish(self) -> None:
        pending = self.events[self._published:]
        self._published = len(self.events)
        for event in pending:
            for subscription in list(self._subscriptions):
                if not subscription.matches(event):
                    continue
                # Observers are off-ledger; their failures never touch state
                try:
                    subscription.callback(event)
                except Exception:
                    logger.exception(f"Subscriber failed on {event.name}#{event.index}")
    
    # =========================================================================
    # Utility
    # =========================================================================
    
    def __repr__(self) -> str:
        return f"Chain(id={self.chain_id}, time={self._now}, contracts={len(self.contracts)}, events={len(self.events)})"
    
    def stats(self) -> dict:
        """Get chain statistics."""
        return {
            "chain_id": self.chain_id,
            "time": self._now,
            "contract_count": len(self.contracts),
            "event_count": len(self.events),
            "funded_accounts": sum(1 for b in self.balances.values() if b > 0),
            "native_supply": sum(self.balances.values()),
        }
