"""
PriceOracle - converts asset amounts into a USD unit of account.

Conversion:
----------
A feed answers with `price` scaled by `feedDecimals`; an asset amount is
scaled by `assetDecimals` (18 for the native currency, the token's own
decimals otherwise). The USD value, normalized to 18 decimals, is

    usd = amount * price * 10^18 // (10^assetDecimals * 10^feedDecimals)

Floor division means a conversion never overstates a bid.

Trust:
-----
A price is only used if it is positive, complete (`updated_at != 0`),
not carried over from an earlier round, and no older than the staleness
bound. Anything else is rejected rather than trusted.
"""

from typing import Dict, Optional, Tuple

from gavel.core.chain import Ownable, atomic, checked_address
from gavel.core.errors import (
    InvalidAmount,
    InvalidPrice,
    NoFeedConfigured,
    StalePrice,
    UnknownAsset,
    UnknownContract,
    ValidationError,
)
from gavel.core.oracle.feed import PriceFeed
from gavel.crypto import ZERO_ADDRESS
from gavel.utils.logger import get_logger
from gavel.utils.validation import validate_amount, validate_positive

logger = get_logger("oracle")


# =============================================================================
# Constants
# =============================================================================

# Sentinel asset id for the chain's native currency
NATIVE_ASSET = ZERO_ADDRESS

# Native currency precision
NATIVE_DECIMALS = 18

# Precision of every USD amount the oracle returns
USD_DECIMALS = 18

# Maximum age of a usable price (seconds)
DEFAULT_STALENESS_BOUND = 3600


class PriceOracle(Ownable):
    """
    Registry of price feeds per payment asset.
    
    Attributes:
        feeds: Asset id (NATIVE_ASSET or token address) -> feed address
        staleness_bound: Maximum price age in seconds
    """
    
    def __init__(
        self,
        chain,
        deployer: str,
        native_feed: Optional[str] = None,
        staleness_bound: int = DEFAULT_STALENESS_BOUND,
        owner: Optional[str] = None,
    ):
        valid, err = validate_positive(staleness_bound, "staleness_bound")
        if not valid:
            raise ValidationError(err)
        super().__init__(chain, deployer, owner)
        self.feeds: Dict[str, str] = {}
        self.staleness_bound = staleness_bound
        if native_feed is not None:
            self.feeds[NATIVE_ASSET] = self._checked_feed(native_feed)
        
        logger.info(f"PriceOracle initialized with staleness_bound={staleness_bound}s")
    
    # =========================================================================
    # Configuration (owner-only)
    # =========================================================================
    
    @atomic
    def set_feed(self, sender: str, asset: str, feed: str) -> None:
        """Insert or replace the feed for `asset`."""
        self._only_owner(sender)
        asset = checked_address(asset, "asset")
        feed = self._checked_feed(feed)
        
        previous = self.feeds.get(asset, ZERO_ADDRESS)
        self.feeds[asset] = feed
        
        self.emit("FeedUpdated", asset=asset, previous=previous, feed=feed)
        logger.info(f"Feed for {asset} set to {feed}")
    
    @atomic
    def remove_feed(self, sender: str, asset: str) -> None:
        """Stop pricing `asset`."""
        self._only_owner(sender)
        asset = checked_address(asset, "asset")
        if asset not in self.feeds:
            raise NoFeedConfigured(f"No feed for {asset}")
        
        previous = self.feeds.pop(asset)
        self.emit("FeedUpdated", asset=asset, previous=previous, feed=ZERO_ADDRESS)
        logger.info(f"Feed for {asset} removed")
    
    @atomic
    def set_staleness_bound(self, sender: str, seconds: int) -> None:
        self._only_owner(sender)
        valid, err = validate_positive(seconds, "staleness_bound")
        if not valid:
            raise ValidationError(err)
        
        previous, self.staleness_bound = self.staleness_bound, seconds
        self.emit("StalenessBoundUpdated", previous=previous, staleness_bound=seconds)
    
    def _checked_feed(self, feed: str):
        feed = checked_address(feed, "feed")
        contract = self.chain.get_contract(feed)
        if not isinstance(contract, PriceFeed):
            raise UnknownContract(f"{feed} is not a price feed")
        return feed
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    def has_feed(self, asset: str) -> bool:
        return asset.lower() in self.feeds
    
    def get_feed(self, asset: str) -> str:
        feed = self.feeds.get(asset.lower())
        if feed is None:
            raise NoFeedConfigured(f"No feed for {asset}")
        return feed
    
    def get_latest_price(self, asset: str) -> Tuple[int, int]:
        """
        Latest trusted price for `asset`.
        
        Returns:
            (price, feed_decimals)
            
        Raises:
            NoFeedConfigured, StalePrice, InvalidPrice
        """
        feed = self.chain.get_contract(self.get_feed(asset))
        data = feed.latest_round_data()
        
        if data.answer <= 0:
            raise InvalidPrice(f"Feed {feed.address} answered {data.answer}")
        if data.updated_at == 0:
            raise StalePrice(f"Feed {feed.address} round {data.round_id} incomplete")
        if data.answered_in_round < data.round_id:
            raise StalePrice(f"Feed {feed.address} answer carried over from round {data.answered_in_round}")
        
        age = self.chain.now - data.updated_at
        if age > self.staleness_bound:
            raise StalePrice(f"Feed {feed.address} is {age}s old (bound {self.staleness_bound}s)")
        
        return data.answer, feed.decimals
    
    def convert(self, asset: str, amount: int) -> int:
        """
        USD value of `amount` units of `asset`, with 18 decimals.
        
        Args:
            asset: NATIVE_ASSET or token address
            amount: Amount in the asset's smallest unit
            
        Returns:
            USD amount scaled by 10^18
        """
        valid, err = validate_amount(amount)
        if not valid:
            raise InvalidAmount(err)
        
        price, feed_decimals = self.get_latest_price(asset)
        asset_decimals = self._asset_decimals(asset)
        
        return amount * price * 10**USD_DECIMALS // 10**(asset_decimals + feed_decimals)
    
    def _asset_decimals(self, asset: str) -> int:
        asset = asset.lower()
        if asset == NATIVE_ASSET:
            return NATIVE_DECIMALS
        token = self.chain.contracts.get(asset)
        decimals = getattr(token, "decimals", None)
        if decimals is None:
            raise UnknownAsset(f"{asset} exposes no decimals")
        return decimals
    
    def stats(self) -> dict:
        return {
            "feeds": len(self.feeds),
            "staleness_bound": self.staleness_bound,
            "owner": self.owner,
        }
