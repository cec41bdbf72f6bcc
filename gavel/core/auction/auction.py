"""
Auction - escrowed English auction with a USD reserve price.

This module implements the per-instance state machine:

    ACTIVE ──settle()──▶ ENDED

ACTIVE is split by time into "biddable" (now < end_time) and "awaiting
settlement" (now >= end_time). That split is derived from the clock, not
stored, so there is exactly one stored transition and it happens once.

Escrow:
------
The instance holds the asset from creation until settlement and holds the
current highest bid. Outbid amounts, the platform fee and the seller's
proceeds are never pushed to their recipients; they are credited to
`pending_returns` and withdrawn separately. A recipient that refuses funds
can only block its own withdrawal.

Ordering inside every operation is checks, then effects, then external
calls, and every operation is atomic: a failure anywhere leaves the instance
exactly as it was.
"""

import functools
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional, Tuple

from gavel.core.chain import Contract, atomic, checked_address, external_call
from gavel.core.errors import (
    AlreadyEnded,
    AlreadyInitialized,
    AuctionExpired,
    BelowReserve,
    BidTooLow,
    DurationTooShort,
    InvalidAddress,
    InvalidAmount,
    InvalidFeePercent,
    InvalidReserve,
    NothingToWithdraw,
    NotInitialized,
    NotYetExpired,
    Reentrancy,
    SellerCannotBid,
    UnexpectedValue,
    UntrustedRelayer,
    ValueMismatch,
    ZeroAmount,
)
from gavel.core.oracle import NATIVE_ASSET
from gavel.crypto import ZERO_ADDRESS
from gavel.utils.logger import get_logger
from gavel.utils.validation import validate_amount, validate_percent, validate_positive

logger = get_logger("auction")


# =============================================================================
# Enums and Views
# =============================================================================


class AuctionState(IntEnum):
    """Stored lifecycle state of an auction."""
    ACTIVE = 0  # Accepting bids until end_time, then awaiting settlement
    ENDED = 1   # Settled; terminal


@dataclass(frozen=True)
class AuctionDetails:
    """Read-only view of an auction for presentation layers."""
    asset_contract: str
    asset_id: int
    seller: str
    payment_asset: str
    start_time: int
    end_time: int
    reserve_price_usd: int
    highest_bid: int
    highest_bidder: str
    ended: bool


def non_reentrant(method: Callable) -> Callable:
    """Reject calls into the instance while one of its operations is running."""
    
    @functools.wraps(method)
    def wrapper(self: "Auction", *args, **kwargs):
        if self._entered:
            raise Reentrancy(f"{method.__name__} re-entered on {self.address}")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False
    
    return wrapper


# =============================================================================
# Auction
# =============================================================================


class Auction(Contract):
    """
    A single auction instance.
    
    Created uninitialised (as a template or a clone of one) and configured
    exactly once by `initialize`, normally from the factory.
    
    Attributes:
        asset_contract: AssetRegistry holding the escrowed item
        asset_id: Token id of the escrowed item
        seller: Receives net proceeds, or the item back if unsold
        payment_asset: NATIVE_ASSET or a FungibleToken address
        start_time / end_time: Bidding window [start, end)
        reserve_price_usd: Minimum USD value (18 decimals) of any bid
        highest_bid / highest_bidder: Current leader (0 / zero address if none)
        ended: True once settled
        oracle, fee_collector, fee_percent: Factory configuration captured at creation
        pending_returns: Pull-payment credits per recipient
    """
    
    def __init__(self, chain, deployer: str):
        super().__init__(chain, deployer)
        self.initialized = False
        self.factory = ZERO_ADDRESS
        
        self.asset_contract = ZERO_ADDRESS
        self.asset_id = 0
        self.seller = ZERO_ADDRESS
        self.payment_asset = NATIVE_ASSET
        self.start_time = 0
        self.end_time = 0
        self.reserve_price_usd = 0
        
        self.highest_bid = 0
        self.highest_bidder = ZERO_ADDRESS
        self.ended = False
        
        self.oracle = ZERO_ADDRESS
        self.fee_collector = ZERO_ADDRESS
        self.fee_percent = 0
        
        self.pending_returns: Dict[str, int] = {}
        self._entered = False
    
    def clone(self, deployer: str) -> "Auction":
        """Fresh, uninitialised instance of this template's class."""
        return type(self)(self.chain, deployer)
    
    # =========================================================================
    # Initialization
    # =========================================================================
    
    @atomic
    def initialize(
        self,
        sender: str,
        seller: str,
        asset_contract: str,
        asset_id: int,
        payment_asset: str,
        duration: int,
        reserve_price_usd: int,
        oracle: str,
        fee_collector: str,
        fee_percent: int,
    ) -> None:
        """
        Configure the instance (once).
        
        The caller (the factory) is responsible for moving the asset into
        the instance within the same atomic operation.
        """
        if self.initialized:
            raise AlreadyInitialized(f"Auction {self.address} already initialized")
        
        valid, err = validate_positive(duration, "duration")
        if not valid:
            raise DurationTooShort(err)
        valid, err = validate_positive(reserve_price_usd, "reserve_price_usd")
        if not valid:
            raise InvalidReserve(err)
        valid, err = validate_percent(fee_percent)
        if not valid:
            raise InvalidFeePercent(err)
        
        self.factory = checked_address(sender, "sender")
        self.seller = checked_address(seller, "seller")
        self.asset_contract = checked_address(asset_contract, "asset_contract")
        self.asset_id = asset_id
        self.payment_asset = checked_address(payment_asset, "payment_asset")
        self.start_time = self.chain.now
        self.end_time = self.start_time + duration
        self.reserve_price_usd = reserve_price_usd
        self.oracle = checked_address(oracle, "oracle")
        self.fee_collector = checked_address(fee_collector, "fee_collector")
        self.fee_percent = fee_percent
        self.initialized = True
    
    def _require_initialized(self) -> None:
        if not self.initialized:
            raise NotInitialized(f"Auction {self.address} is not initialized")
    
    def _is_trusted_relayer(self, address: str) -> bool:
        if not self.chain.is_contract(self.factory):
            return False
        is_relayer = getattr(self.chain.get_contract(self.factory), "is_relayer", None)
        return is_relayer is not None and is_relayer(address)
    
    # =========================================================================
    # Bidding
    # =========================================================================
    
    @atomic
    @non_reentrant
    def place_bid(
        self,
        sender: str,
        amount: int,
        value: int = 0,
        bidder: Optional[str] = None,
    ) -> None:
        """
        Place a bid of `amount` units of the payment asset.
        
        The sender always funds the escrow. Bidding on behalf of another
        address is reserved for relayers the factory trusts.
        
        Args:
            sender: Caller; pays the bid
            amount: Bid in the payment asset's smallest unit
            value: Native currency attached to the call (native auctions only)
            bidder: Becomes the highest bidder if accepted; defaults to `sender`
            
        Raises:
            InvalidAddress, UntrustedRelayer, SellerCannotBid, AlreadyEnded,
            AuctionExpired, ZeroAmount, ValueMismatch, UnexpectedValue,
            BelowReserve, BidTooLow, or the failure of the escrow pull
        """
        self._require_initialized()
        sender = checked_address(sender, "sender")
        bidder = checked_address(bidder or sender, "bidder")
        
        # 1. Checks
        if bidder == ZERO_ADDRESS:
            raise InvalidAddress("The zero address cannot bid")
        if bidder != sender and not self._is_trusted_relayer(sender):
            raise UntrustedRelayer(f"{sender} may not bid on behalf of {bidder}")
        if bidder == self.seller:
            raise SellerCannotBid()
        if self.ended:
            raise AlreadyEnded()
        if self.chain.now >= self.end_time:
            raise AuctionExpired(f"Auction {self.address} closed at {self.end_time}")
        
        valid, err = validate_amount(amount)
        if not valid:
            raise InvalidAmount(err)
        if amount == 0:
            raise ZeroAmount()
        
        if self.payment_asset == NATIVE_ASSET:
            if value != amount:
                raise ValueMismatch(f"Attached {value}, bid {amount}")
        elif value != 0:
            raise UnexpectedValue(f"Attached {value} to a token auction")
        
        oracle = self.chain.get_contract(self.oracle)
        usd_value = oracle.convert(self.payment_asset, amount)
        if usd_value < self.reserve_price_usd:
            raise BelowReserve(f"Bid worth {usd_value} USD-wei, reserve {self.reserve_price_usd}")
        
        if amount <= self.highest_bid:
            raise BidTooLow(f"Bid {amount} does not exceed {self.highest_bid}")
        
        # 2. Escrow the new bid; a failed pull aborts everything
        self._pull(sender, amount)
        
        # 3. Effects: release the previous leader's escrow to its credit
        previous_bidder, previous_bid = self.highest_bidder, self.highest_bid
        if previous_bid > 0:
            self._credit(previous_bidder, previous_bid)
            self.emit("RefundCredited", bidder=previous_bidder, amount=previous_bid)
        
        self.highest_bid = amount
        self.highest_bidder = bidder
        
        self.emit("BidPlaced", bidder=bidder, amount=amount)
        logger.debug(f"Bid on {self.address[:10]}...: {bidder[:10]}... bid {amount} (~{usd_value} USD-wei)")
    
    # =========================================================================
    # Settlement
    # =========================================================================
    
    @atomic
    @non_reentrant
    def settle(self, caller: str) -> Tuple[str, int]:
        """
        Conclude the auction. Callable by anyone once the window has closed.
        
        With a winning bid the asset goes to the winner, the fee is credited
        to the fee collector and the rest to the seller. Without bids the
        asset returns to the seller.
        
        Returns:
            (winner, final_amount) - zero address and 0 when unsold
        """
        self._require_initialized()
        checked_address(caller, "caller")
        
        if self.ended:
            raise AlreadyEnded()
        if self.chain.now < self.end_time:
            raise NotYetExpired(f"Auction {self.address} ends at {self.end_time}")
        
        # Commit the transition before any external call
        self.ended = True
        registry = self.chain.get_contract(self.asset_contract)
        
        if self.highest_bid > 0:
            winner, amount = self.highest_bidder, self.highest_bid
            fee, net = self.split_proceeds(amount)
            
            if fee > 0:
                self._credit(self.fee_collector, fee)
                self.emit("ProceedsCredited", recipient=self.fee_collector, amount=fee, kind="fee")
            self._credit(self.seller, net)
            self.emit("ProceedsCredited", recipient=self.seller, amount=net, kind="seller")
            
            external_call(registry.transfer_from, self.address, self.address, winner, self.asset_id)
        else:
            winner, amount = ZERO_ADDRESS, 0
            external_call(registry.transfer_from, self.address, self.address, self.seller, self.asset_id)
        
        self.emit("AuctionEnded", winner=winner, amount=amount)
        logger.info(f"Auction {self.address} settled: winner={winner}, amount={amount}")
        return winner, amount
    
    def split_proceeds(self, amount: int) -> Tuple[int, int]:
        """
        Split a winning bid into (fee, net).
        
        The fee rounds down, so the seller absorbs the truncation remainder
        and fee + net == amount exactly.
        """
        fee = amount * self.fee_percent // 100
        return fee, amount - fee
    
    # =========================================================================
    # Pull payments
    # =========================================================================
    
    @atomic
    @non_reentrant
    def withdraw(self, caller: str) -> int:
        """
        Pay out everything credited to `caller`.
        
        The credit is cleared before the transfer; if the transfer fails the
        whole withdrawal is rolled back and the credit remains.
        
        Returns:
            Amount paid
        """
        caller = checked_address(caller, "caller")
        amount = self.pending_returns.get(caller, 0)
        if amount == 0:
            raise NothingToWithdraw(f"{caller} has no credit on {self.address}")
        
        del self.pending_returns[caller]
        
        if self.payment_asset == NATIVE_ASSET:
            self.chain.transfer_native(self.address, caller, amount)
        else:
            token = self.chain.get_contract(self.payment_asset)
            external_call(token.transfer, self.address, caller, amount)
        
        self.emit("Withdrawn", recipient=caller, amount=amount)
        logger.debug(f"{caller[:10]}... withdrew {amount} from {self.address[:10]}...")
        return amount
    
    def _credit(self, recipient: str, amount: int) -> None:
        self.pending_returns[recipient] = self.pending_returns.get(recipient, 0) + amount
    
    def _pull(self, payer: str, amount: int) -> None:
        if self.payment_asset == NATIVE_ASSET:
            self.chain.transfer_native(payer, self.address, amount)
        else:
            token = self.chain.get_contract(self.payment_asset)
            external_call(token.transfer_from, self.address, payer, self.address, amount)
    
    # =========================================================================
    # Views
    # =========================================================================
    
    @property
    def state(self) -> AuctionState:
        return AuctionState.ENDED if self.ended else AuctionState.ACTIVE
    
    def details(self) -> AuctionDetails:
        return AuctionDetails(
            asset_contract=self.asset_contract,
            asset_id=self.asset_id,
            seller=self.seller,
            payment_asset=self.payment_asset,
            start_time=self.start_time,
            end_time=self.end_time,
            reserve_price_usd=self.reserve_price_usd,
            highest_bid=self.highest_bid,
            highest_bidder=self.highest_bidder,
            ended=self.ended,
        )
    
    def is_biddable(self) -> bool:
        return self.initialized and not self.ended and self.chain.now < self.end_time
    
    def awaiting_settlement(self) -> bool:
        return self.initialized and not self.ended and self.chain.now >= self.end_time
    
    def time_remaining(self) -> int:
        return max(0, self.end_time - self.chain.now)
    
    def pending_withdrawal(self, address: str) -> int:
        return self.pending_returns.get(address.lower(), 0)
    
    def total_owed(self) -> int:
        """Funds the instance must hold: the live bid (until settled) plus all credits."""
        live = 0 if self.ended else self.highest_bid
        return live + sum(self.pending_returns.values())
    
    def stats(self) -> dict:
        return {
            "state": self.state.name,
            "highest_bid": self.highest_bid,
            "highest_bidder": self.highest_bidder,
            "time_remaining": self.time_remaining(),
            "pending_recipients": len(self.pending_returns),
            "total_owed": self.total_owed(),
        }
