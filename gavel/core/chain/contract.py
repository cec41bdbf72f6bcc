"""
Contract - base class for components deployed on a Chain.

A contract's persistent state is its instance attributes, minus the handles
back to the chain. The chain snapshots and restores that state around every
atomic operation, so contract code only has to raise to abort.
"""

import copy
import functools
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from gavel.core.errors import GavelError, InvalidAddress, TransferRejected, Unauthorized
from gavel.crypto import normalize_address
from gavel.utils.validation import validate_address

if TYPE_CHECKING:
    from gavel.core.chain.ledger import Chain


class Contract:
    """
    Base class for ledger-resident components.
    
    Attributes:
        chain: Chain this contract is deployed on
        address: Deterministic address assigned at deployment
        deployer: Address that deployed the contract
    """
    
    # Attributes that are handles, not state
    _TRANSIENT = ("chain", "address")
    
    def __init__(self, chain: "Chain", deployer: str):
        self.chain = chain
        self.deployer = checked_address(deployer, "deployer")
        self.address = chain.register_contract(self, self.deployer)
    
    # =========================================================================
    # State snapshots
    # =========================================================================
    
    def export_state(self) -> Dict[str, Any]:
        """Deep copy of the contract's persistent state."""
        return copy.deepcopy({
            key: value
            for key, value in vars(self).items()
            if key not in self._TRANSIENT
        })
    
    def import_state(self, state: Dict[str, Any]) -> None:
        """Replace the contract's persistent state."""
        for key in [k for k in vars(self) if k not in self._TRANSIENT]:
            delattr(self, key)
        vars(self).update(state)
    
    # =========================================================================
    # Helpers
    # =========================================================================
    
    def emit(self, name: str, **args: Any) -> None:
        """Emit an event from this contract."""
        self.chain.emit(self.address, name, args)
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address})"


def atomic(method: Callable) -> Callable:
    """Run a contract method as one all-or-nothing unit on its chain."""
    
    @functools.wraps(method)
    def wrapper(self: Contract, *args, **kwargs):
        with self.chain.atomic():
            return method(self, *args, **kwargs)
    
    return wrapper


def checked_address(value: Any, name: str = "address") -> str:
    """Validate an address argument and return its canonical (lowercase) form."""
    valid, err = validate_address(value, name)
    if not valid:
        raise InvalidAddress(err)
    return normalize_address(value)


class Ownable(Contract):
    """
    Contract with a single owner allowed to change its configuration.
    
    Attributes:
        owner: Address authorized for owner-only operations
    """
    
    def __init__(self, chain: "Chain", deployer: str, owner: Optional[str] = None):
        owner = checked_address(owner or deployer, "owner")
        super().__init__(chain, deployer)
        self.owner = owner
    
    def _only_owner(self, sender: str) -> None:
        if sender.lower() != self.owner:
            raise Unauthorized(f"{sender} is not the owner of {self.address}")
    
    @atomic
    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        """Hand owner rights to `new_owner` (owner-only)."""
        self._only_owner(sender)
        new_owner = checked_address(new_owner, "new_owner")
        previous, self.owner = self.owner, new_owner
        self.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)


def external_call(fn: Callable, *args, **kwargs) -> Any:
    """
    Invoke a collaborator contract.
    
    Engine errors propagate unchanged; any other failure in the callee is
    reported as TransferRejected so callers see a stable reason code.
    """
    try:
        return fn(*args, **kwargs)
    except GavelError:
        raise
    except Exception as e:
        raise TransferRejected(f"{getattr(fn, '__qualname__', fn)} failed: {e}") from e
