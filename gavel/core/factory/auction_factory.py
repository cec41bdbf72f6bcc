"""
AuctionFactory - deploys auction instances and keeps their registry.

This module provides:
- Auction creation with atomic custody transfer
- An append-only, insertion-ordered registry of created auctions
- Owner-controlled platform configuration (fee, fee collector, oracle)
- An owner-managed set of relayers allowed to bid on behalf of others

Configuration is captured by each auction at creation time. Changing the
fee, fee collector or oracle only affects auctions created afterwards.
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, List, Set

from gavel.core.auction import Auction
from gavel.core.chain import Contract, atomic, checked_address, external_call
from gavel.core.errors import (
    DurationTooShort,
    IndexOutOfRange,
    InvalidFeePercent,
    InvalidReserve,
    NoFeedConfigured,
    Unauthorized,
    UnknownContract,
    ValidationError,
)
from gavel.utils.logger import get_logger
from gavel.utils.validation import validate_amount, validate_percent, validate_positive

logger = get_logger("factory")


# =============================================================================
# Constants
# =============================================================================

# Shortest auction the factory accepts by default (seconds)
DEFAULT_MIN_DURATION = 60

# Largest page `get_auctions` returns
MAX_PAGE_SIZE = 100


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class FactoryConfig:
    """
    Global platform configuration.
    
    Attributes:
        auction_template: Address of the Auction instance new auctions are cloned from
        oracle: PriceOracle passed to every new auction
        fee_collector: Receives the platform fee of every settled auction
        fee_percent: Platform fee in whole percent [0, 100]
        owner: Only address allowed to change the configuration
        min_duration: Shortest accepted auction duration (seconds)
    """
    auction_template: str
    oracle: str
    fee_collector: str
    fee_percent: int
    owner: str
    min_duration: int = DEFAULT_MIN_DURATION
    
    def validate(self) -> None:
        """Raise on the first invalid field."""
        for name in ("auction_template", "oracle", "fee_collector", "owner"):
            setattr(self, name, checked_address(getattr(self, name), name))
        valid, err = validate_percent(self.fee_percent)
        if not valid:
            raise InvalidFeePercent(err)
        valid, err = validate_positive(self.min_duration, "min_duration")
        if not valid:
            raise ValidationError(err)
    
    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# Factory
# =============================================================================


class AuctionFactory(Contract):
    """
    Creates auctions and records them for discovery.
    
    Attributes:
        config: Current FactoryConfig
        auction_list: Created auction addresses in creation order
        auction_index: Auction address -> registry index
        relayers: Contracts trusted to bid on behalf of another address
    """
    
    def __init__(self, chain, deployer: str, config: FactoryConfig):
        config = replace(config)
        config.validate()
        _require_template(chain, config.auction_template)
        _require_contract(chain, config.oracle, "oracle")
        super().__init__(chain, deployer)
        self.config = config
        self.auction_list: List[str] = []
        self.auction_index: Dict[str, int] = {}
        self.relayers: Set[str] = set()
    
    def _only_owner(self, sender: str) -> None:
        if sender.lower() != self.config.owner:
            raise Unauthorized(f"{sender} is not the factory owner")
    
    # =========================================================================
    # Creation
    # =========================================================================
    
    @atomic
    def create_auction(
        self,
        seller: str,
        asset_contract: str,
        asset_id: int,
        payment_asset: str,
        duration: int,
        reserve_price_usd: int,
    ) -> str:
        """
        Create an auction for an asset the caller owns.
        
        The caller must have approved the factory for `asset_id`. Custody
        moves into the new auction in the same atomic step as its creation;
        if the transfer fails nothing is created or registered.
        
        Args:
            seller: Caller; receives the proceeds
            asset_contract: AssetRegistry holding the item
            asset_id: Token id of the item
            payment_asset: NATIVE_ASSET or a FungibleToken address
            duration: Auction length in seconds
            reserve_price_usd: Minimum bid value in USD with 18 decimals
            
        Returns:
            Address of the new auction
        """
        seller = checked_address(seller, "seller")
        asset_contract = checked_address(asset_contract, "asset_contract")
        payment_asset = checked_address(payment_asset, "payment_asset")
        
        valid, err = validate_amount(duration, "duration")
        if not valid:
            raise ValidationError(err)
        if duration < self.config.min_duration:
            raise DurationTooShort(f"Duration {duration}s below minimum {self.config.min_duration}s")
        
        valid, err = validate_positive(reserve_price_usd, "reserve_price_usd")
        if not valid:
            raise InvalidReserve(err)
        
        valid, err = validate_amount(asset_id, "asset_id")
        if not valid:
            raise ValidationError(err)
        
        oracle = self.chain.get_contract(self.config.oracle)
        if not oracle.has_feed(payment_asset):
            raise NoFeedConfigured(f"No price feed for payment asset {payment_asset}")
        
        template = self.chain.get_contract(self.config.auction_template)
        auction = template.clone(self.address)
        auction.initialize(
            self.address,
            seller=seller,
            asset_contract=asset_contract,
            asset_id=asset_id,
            payment_asset=payment_asset,
            duration=duration,
            reserve_price_usd=reserve_price_usd,
            oracle=self.config.oracle,
            fee_collector=self.config.fee_collector,
            fee_percent=self.config.fee_percent,
        )
        
        registry = self.chain.get_contract(asset_contract)
        external_call(registry.transfer_from, self.address, seller, auction.address, asset_id)
        
        index = len(self.auction_list)
        self.auction_list.append(auction.address)
        self.auction_index[auction.address] = index
        
        self.emit(
            "AuctionCreated",
            auction=auction.address,
            index=index,
            seller=seller,
            asset_contract=asset_contract,
            asset_id=asset_id,
            payment_asset=payment_asset,
            end_time=auction.end_time,
            reserve_price_usd=reserve_price_usd,
        )
        logger.info(f"Auction #{index} created at {auction.address} by {seller[:10]}... (ends {auction.end_time})")
        return auction.address
    
    # =========================================================================
    # Registry
    # =========================================================================
    
    def get_auction_count(self) -> int:
        return len(self.auction_list)
    
    def auctions(self, index: int) -> str:
        """Auction address at registry `index`."""
        if not isinstance(index, int) or not 0 <= index < len(self.auction_list):
            raise IndexOutOfRange(f"Index {index} outside [0, {len(self.auction_list)})")
        return self.auction_list[index]
    
    def get_auctions(self, start: int = 0, count: int = MAX_PAGE_SIZE) -> List[str]:
        """
        Page through the registry.
        
        The page is clipped to the end of the registry and to MAX_PAGE_SIZE;
        a `start` past the end fails with IndexOutOfRange.
        """
        if start < 0 or count < 0 or start > len(self.auction_list):
            raise IndexOutOfRange(f"Page start={start} count={count} outside registry")
        count = min(count, MAX_PAGE_SIZE)
        return self.auction_list[start:start + count]
    
    def is_auction(self, address: str) -> bool:
        return address.lower() in self.auction_index
    
    def index_of(self, address: str) -> int:
        index = self.auction_index.get(address.lower())
        if index is None:
            raise IndexOutOfRange(f"{address} is not a registered auction")
        return index
    
    def get_auction(self, address: str) -> Auction:
        """Resolve a registered auction instance."""
        return self.chain.get_contract(self.auction_list[self.index_of(address)])
    
    # =========================================================================
    # Configuration
    # =========================================================================
    
    @atomic
    def set_fee_percent(self, sender: str, fee_percent: int) -> None:
        """Set the platform fee for auctions created from now on (owner-only)."""
        self._only_owner(sender)
        valid, err = validate_percent(fee_percent)
        if not valid:
            raise InvalidFeePercent(err)
        self._set("fee_percent", fee_percent)
    
    @atomic
    def set_fee_collector(self, sender: str, fee_collector: str) -> None:
        self._only_owner(sender)
        self._set("fee_collector", checked_address(fee_collector, "fee_collector"))
    
    @atomic
    def set_oracle(self, sender: str, oracle: str) -> None:
        self._only_owner(sender)
        oracle = checked_address(oracle, "oracle")
        _require_contract(self.chain, oracle, "oracle")
        self._set("oracle", oracle)
    
    @atomic
    def set_auction_template(self, sender: str, template: str) -> None:
        self._only_owner(sender)
        template = checked_address(template, "auction_template")
        _require_template(self.chain, template)
        self._set("auction_template", template)
    
    @atomic
    def set_min_duration(self, sender: str, min_duration: int) -> None:
        self._only_owner(sender)
        valid, err = validate_positive(min_duration, "min_duration")
        if not valid:
            raise ValidationError(err)
        self._set("min_duration", min_duration)
    
    @atomic
    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self._only_owner(sender)
        self._set("owner", checked_address(new_owner, "new_owner"))
    
    @atomic
    def set_relayer(self, sender: str, relayer: str, trusted: bool) -> None:
        """
        Allow or disallow a relay contract to place bids for other addresses
        on every auction this factory created (owner-only).
        """
        self._only_owner(sender)
        relayer = checked_address(relayer, "relayer")
        if trusted:
            _require_contract(self.chain, relayer, "relayer")
            self.relayers.add(relayer)
        else:
            self.relayers.discard(relayer)
        self.emit("RelayerSet", relayer=relayer, trusted=trusted)
        logger.info(f"Relayer {relayer} trusted={trusted}")
    
    def is_relayer(self, address: str) -> bool:
        return address.lower() in self.relayers
    
    def _set(self, key: str, value) -> None:
        old = getattr(self.config, key)
        setattr(self.config, key, value)
        self.emit("ConfigChanged", key=key, old=old, new=value)
        logger.info(f"Factory config {key}: {old} -> {value}")
    
    # =========================================================================
    # Utility
    # =========================================================================
    
    def stats(self) -> dict:
        """Get factory statistics."""
        ended = sum(
            1 for address in self.auction_list
            if self.chain.get_contract(address).ended
        )
        return {
            "auction_count": len(self.auction_list),
            "ended_count": ended,
            "active_count": len(self.auction_list) - ended,
            "relayer_count": len(self.relayers),
            **self.config.to_dict(),
        }


def _require_contract(chain, address: str, name: str) -> None:
    if not chain.is_contract(address):
        raise UnknownContract(f"{name} {address} is not a deployed contract")


def _require_template(chain, address: str) -> None:
    _require_contract(chain, address, "auction_template")
    if not isinstance(chain.get_contract(address), Auction):
        raise UnknownContract(f"{address} is not an Auction template")
