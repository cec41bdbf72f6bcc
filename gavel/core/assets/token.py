"""
FungibleToken - payment token for auctions not settled in native currency.

Balances and allowances with the usual transfer / transfer_from split: the
auction escrows bids by pulling from the bidder's allowance.
"""

from typing import Dict, Optional

from gavel.core.chain import Ownable, atomic, checked_address
from gavel.core.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
)
from gavel.crypto import ZERO_ADDRESS
from gavel.utils.validation import validate_amount


def _checked_amount(amount: int) -> int:
    valid, err = validate_amount(amount)
    if not valid:
        raise InvalidAmount(err)
    return amount


class FungibleToken(Ownable):
    """
    Fungible token with allowances.
    
    Attributes:
        name: Token name
        symbol: Token symbol
        decimals: Fixed-point precision of amounts
        total_supply: Sum of all balances
    """
    
    def __init__(
        self,
        chain,
        deployer: str,
        name: str,
        symbol: str,
        decimals: int = 18,
        owner: Optional[str] = None,
    ):
        super().__init__(chain, deployer, owner)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, Dict[str, int]] = {}
    
    def balance_of(self, account: str) -> int:
        return self.balances.get(account.lower(), 0)
    
    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner.lower(), {}).get(spender.lower(), 0)
    
    @atomic
    def mint(self, sender: str, to: str, amount: int) -> None:
        """Create `amount` new tokens for `to` (owner-only)."""
        self._only_owner(sender)
        to = checked_address(to, "to")
        _checked_amount(amount)
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount
        self.emit("Transfer", from_=ZERO_ADDRESS, to=to, amount=amount)
    
    @atomic
    def approve(self, sender: str, spender: str, amount: int) -> None:
        sender = sender.lower()
        spender = checked_address(spender, "spender")
        _checked_amount(amount)
        self.allowances.setdefault(sender, {})[spender] = amount
        self.emit("Approval", owner=sender, spender=spender, amount=amount)
    
    @atomic
    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender.lower(), checked_address(to, "to"), _checked_amount(amount))
    
    @atomic
    def transfer_from(self, sender: str, from_: str, to: str, amount: int) -> None:
        """Move `amount` from `from_` to `to`, spending `sender`'s allowance."""
        sender, from_ = sender.lower(), from_.lower()
        to = checked_address(to, "to")
        _checked_amount(amount)
        
        if sender != from_:
            allowed = self.allowance(from_, sender)
            if allowed < amount:
                raise InsufficientAllowance(f"{sender} may spend {allowed} of {from_}, needs {amount}")
            self.allowances.setdefault(from_, {})[sender] = allowed - amount
        
        self._move(from_, to, amount)
    
    def _move(self, from_: str, to: str, amount: int) -> None:
        if to == ZERO_ADDRESS:
            raise InvalidAddress("Cannot transfer to the zero address")
        balance = self.balances.get(from_, 0)
        if balance < amount:
            raise InsufficientBalance(f"{from_} holds {balance} {self.symbol}, needs {amount}")
        self.balances[from_] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self.emit("Transfer", from_=from_, to=to, amount=amount)
