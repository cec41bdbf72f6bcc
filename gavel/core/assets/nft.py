"""
AssetRegistry - custody contract for the non-fungible items being auctioned.

Tracks ownership and transfer approvals per token id. The auction engine
only relies on `transfer_from` and `owner_of`; sellers use the approval
helpers to let the factory pull custody when an auction is created.
"""

from typing import Dict, List, Optional, Set

from gavel.core.chain import Ownable, atomic, checked_address
from gavel.core.errors import (
    InvalidAddress,
    NonexistentToken,
    NotApproved,
    NotTokenOwner,
)
from gavel.crypto import ZERO_ADDRESS
from gavel.utils.logger import get_logger

logger = get_logger("assets")


class AssetRegistry(Ownable):
    """
    Non-fungible token registry.
    
    Attributes:
        name: Collection name
        symbol: Collection symbol
        next_token_id: Id assigned by the next mint (ids start at 1)
        owners: Token id -> owner address
        token_uris: Token id -> metadata URI
        token_approvals: Token id -> single approved spender
        operators: Owner -> addresses approved for all of the owner's tokens
    """
    
    def __init__(self, chain, deployer: str, name: str, symbol: str, owner: Optional[str] = None):
        super().__init__(chain, deployer, owner)
        self.name = name
        self.symbol = symbol
        self.next_token_id = 1
        self.owners: Dict[int, str] = {}
        self.token_uris: Dict[int, str] = {}
        self.balances: Dict[str, int] = {}
        self.token_approvals: Dict[int, str] = {}
        self.operators: Dict[str, Set[str]] = {}
    
    # =========================================================================
    # Views
    # =========================================================================
    
    def owner_of(self, token_id: int) -> str:
        owner = self.owners.get(token_id)
        if owner is None:
            raise NonexistentToken(f"Token {token_id} does not exist")
        return owner
    
    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner.lower(), 0)
    
    def token_uri(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self.token_uris[token_id]
    
    def get_approved(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)
    
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return operator.lower() in self.operators.get(owner.lower(), set())
    
    def _is_approved_or_owner(self, spender: str, token_id: int) -> bool:
        owner = self.owner_of(token_id)
        return (
            spender == owner
            or self.token_approvals.get(token_id) == spender
            or self.is_approved_for_all(owner, spender)
        )
    
    # =========================================================================
    # Minting
    # =========================================================================
    
    @atomic
    def mint(self, sender: str, to: str, token_uri: str) -> int:
        """
        Mint a new token to `to` (owner-only).
        
        Returns:
            The new token id
        """
        self._only_owner(sender)
        to = checked_address(to, "to")
        if to == ZERO_ADDRESS:
            raise InvalidAddress("Cannot mint to the zero address")
        
        token_id = self.next_token_id
        self.next_token_id += 1
        self.owners[token_id] = to
        self.token_uris[token_id] = token_uri
        self.balances[to] = self.balances.get(to, 0) + 1
        
        self.emit("Minted", to=to, token_id=token_id, token_uri=token_uri)
        logger.debug(f"{self.symbol} #{token_id} minted to {to}")
        return token_id
    
    # =========================================================================
    # Approvals
    # =========================================================================
    
    @atomic
    def approve(self, sender: str, spender: str, token_id: int) -> None:
        """Approve `spender` to transfer one token (owner or operator)."""
        sender = sender.lower()
        spender = checked_address(spender, "spender")
        owner = self.owner_of(token_id)
        if sender != owner and not self.is_approved_for_all(owner, sender):
            raise NotApproved(f"{sender} cannot approve token {token_id}")
        
        self.token_approvals[token_id] = spender
        self.emit("Approval", owner=owner, approved=spender, token_id=token_id)
    
    @atomic
    def approve_for_auction(self, sender: str, auction: str, token_id: int) -> None:
        """Seller-side helper: approve an auction (or factory) for one token."""
        if self.owner_of(token_id) != sender.lower():
            raise NotTokenOwner()
        self.approve(sender, auction, token_id)
    
    @atomic
    def approve_for_auction_batch(self, sender: str, auction: str, token_ids: List[int]) -> None:
        """Approve an auction (or factory) for several tokens at once."""
        for token_id in token_ids:
            self.approve_for_auction(sender, auction, token_id)
    
    @atomic
    def set_approval_for_all(self, sender: str, operator: str, approved: bool) -> None:
        """Grant or revoke operator rights over all of `sender`'s tokens."""
        sender = sender.lower()
        operator = checked_address(operator, "operator")
        granted = self.operators.setdefault(sender, set())
        if approved:
            granted.add(operator)
        else:
            granted.discard(operator)
        self.emit("ApprovalForAll", owner=sender, operator=operator, approved=approved)
    
    # =========================================================================
    # Transfers
    # =========================================================================
    
    @atomic
    def transfer_from(self, sender: str, from_: str, to: str, token_id: int) -> None:
        """
        Move a token from `from_` to `to`.
        
        `sender` must be the owner, the approved spender, or an operator.
        """
        sender, from_ = sender.lower(), from_.lower()
        to = checked_address(to, "to")
        if to == ZERO_ADDRESS:
            raise InvalidAddress("Cannot transfer to the zero address")
        
        owner = self.owner_of(token_id)
        if owner != from_:
            raise NotTokenOwner(f"{from_} does not own token {token_id}")
        if not self._is_approved_or_owner(sender, token_id):
            raise NotApproved(f"{sender} is not owner nor approved for token {token_id}")
        
        self.token_approvals.pop(token_id, None)
        self.balances[from_] -= 1
        self.balances[to] = self.balances.get(to, 0) + 1
        self.owners[token_id] = to
        
        self.emit("Transfer", from_=from_, to=to, token_id=token_id)
        logger.debug(f"{self.symbol} #{token_id}: {from_} -> {to}")
    
    def stats(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "minted": self.next_token_id - 1,
            "holders": sum(1 for b in self.balances.values() if b > 0),
        }
