"""
Unit tests for the auction state machine.

Tests cover:
1. One-time initialization
2. Bid validation (reserve, ordering, seller, value)
3. Outbid refunds as pull-payment credits
4. Exactly-once settlement and fee split
5. Withdrawals
6. Views
"""

import pytest

from gavel.core.assets import AssetRegistry, FungibleToken
from gavel.core.auction import Auction, AuctionDetails, AuctionState
from gavel.core.chain import Chain
from gavel.core.errors import (
    AlreadyEnded,
    AlreadyInitialized,
    AuctionExpired,
    BelowReserve,
    BidTooLow,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidFeePercent,
    NothingToWithdraw,
    NotInitialized,
    NotYetExpired,
    SellerCannotBid,
    StalePrice,
    UnexpectedValue,
    UntrustedRelayer,
    ValueMismatch,
    ZeroAmount,
)
from gavel.core.oracle import NATIVE_ASSET, MockPriceFeed, PriceOracle
from gavel.crypto import ZERO_ADDRESS, address_from_label


START = 1_700_000_000
DAY = 86400
ETH = 10**18
USD = 10**18
RESERVE = 100 * USD
AT_RESERVE = 4 * ETH // 100  # 0.04 ETH at $2500


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def chain():
    return Chain(start_time=START)


@pytest.fixture
def deployer():
    return address_from_label("deployer")


@pytest.fixture
def seller():
    return address_from_label("seller")


@pytest.fixture
def alice(chain):
    address = address_from_label("alice")
    chain.fund(address, 10 * ETH)
    return address


@pytest.fixture
def bob(chain):
    address = address_from_label("bob")
    chain.fund(address, 10 * ETH)
    return address


@pytest.fixture
def collector():
    return address_from_label("collector")


@pytest.fixture
def oracle(chain, deployer):
    feed = MockPriceFeed(chain, deployer, decimals=8, initial_answer=2500 * 10**8)
    return PriceOracle(chain, deployer, native_feed=feed.address)


@pytest.fixture
def nft(chain, deployer, seller):
    registry = AssetRegistry(chain, deployer, "Gavel Lots", "LOT")
    registry.mint(deployer, seller, "ipfs://lot/1")
    return registry


def open_auction(chain, deployer, seller, nft, oracle, collector, payment_asset=NATIVE_ASSET, fee_percent=2):
    """Initialize a fresh auction and move token 1 into it, as the factory does."""
    auction = Auction(chain, deployer)
    auction.initialize(
        deployer,
        seller=seller,
        asset_contract=nft.address,
        asset_id=1,
        payment_asset=payment_asset,
        duration=DAY,
        reserve_price_usd=RESERVE,
        oracle=oracle.address,
        fee_collector=collector,
        fee_percent=fee_percent,
    )
    nft.transfer_from(seller, seller, auction.address, 1)
    return auction


@pytest.fixture
def auction(chain, deployer, seller, nft, oracle, collector):
    return open_auction(chain, deployer, seller, nft, oracle, collector)


def bid(auction, bidder, amount):
    auction.place_bid(bidder, amount, value=amount)


# =============================================================================
# Initialization Tests
# =============================================================================


class TestInitialization:
    """Tests for initialize() and clone()."""
    
    def test_window(self, auction):
        assert auction.start_time == START
        assert auction.end_time == START + DAY
        assert auction.state == AuctionState.ACTIVE
    
    def test_initialize_once(self, auction, deployer, seller, nft, oracle, collector):
        with pytest.raises(AlreadyInitialized):
            auction.initialize(
                deployer, seller, nft.address, 1, NATIVE_ASSET, DAY, RESERVE,
                oracle.address, collector, 2,
            )
    
    def test_uninitialized_rejects_operations(self, chain, deployer, alice):
        template = Auction(chain, deployer)
        with pytest.raises(NotInitialized):
            template.place_bid(alice, ETH, value=ETH)
        with pytest.raises(NotInitialized):
            template.settle(alice)
    
    def test_invalid_fee_percent(self, chain, deployer, seller, nft, oracle, collector):
        auction = Auction(chain, deployer)
        with pytest.raises(InvalidFeePercent):
            auction.initialize(
                deployer, seller, nft.address, 1, NATIVE_ASSET, DAY, RESERVE,
                oracle.address, collector, 101,
            )
        assert not auction.initialized
    
    def test_clone_is_fresh_instance(self, chain, deployer, auction):
        clone = auction.clone(deployer)
        
        assert isinstance(clone, Auction)
        assert clone.address != auction.address
        assert not clone.initialized


# =============================================================================
# Bidding Tests
# =============================================================================


class TestBidding:
    """Tests for place_bid()."""
    
    def test_bid_at_reserve_accepted(self, chain, auction, alice):
        bid(auction, alice, AT_RESERVE)
        
        assert auction.highest_bid == AT_RESERVE
        assert auction.highest_bidder == alice
        assert chain.balance_of(auction.address) == AT_RESERVE
        assert chain.balance_of(alice) == 10 * ETH - AT_RESERVE
    
    def test_bid_event(self, chain, auction, alice):
        bid(auction, alice, AT_RESERVE)
        event = chain.get_events("BidPlaced", auction.address)[-1]
        
        assert event["bidder"] == alice
        assert event["amount"] == AT_RESERVE
    
    def test_equal_bid_rejected(self, auction, alice, bob):
        bid(auction, alice, AT_RESERVE)
        with pytest.raises(BidTooLow):
            bid(auction, bob, AT_RESERVE)
        assert auction.highest_bidder == alice
    
    def test_lower_bid_rejected(self, auction, alice, bob):
        bid(auction, alice, 5 * ETH // 100)
        with pytest.raises(BidTooLow):
            bid(auction, bob, AT_RESERVE)
    
    def test_below_reserve_rejected(self, chain, auction, alice):
        with pytest.raises(BelowReserve):
            bid(auction, alice, AT_RESERVE - 1)
        assert auction.highest_bid == 0
        assert chain.balance_of(alice) == 10 * ETH
    
    def test_seller_cannot_bid(self, chain, auction, seller):
        chain.fund(seller, ETH)
        with pytest.raises(SellerCannotBid):
            bid(auction, seller, ETH)
        chain.advance(DAY)
        with pytest.raises(SellerCannotBid):
            bid(auction, seller, ETH)
    
    def test_zero_amount(self, auction, alice):
        with pytest.raises(ZeroAmount):
            bid(auction, alice, 0)
    
    def test_value_must_match_amount(self, chain, auction, alice):
        with pytest.raises(ValueMismatch):
            auction.place_bid(alice, AT_RESERVE, value=AT_RESERVE - 1)
        with pytest.raises(ValueMismatch):
            auction.place_bid(alice, AT_RESERVE)
        assert chain.balance_of(auction.address) == 0
    
    def test_insufficient_funds(self, chain, auction):
        poor = address_from_label("poor")
        chain.fund(poor, AT_RESERVE - 1)
        with pytest.raises(InsufficientBalance):
            bid(auction, poor, AT_RESERVE)
        assert auction.highest_bid == 0
    
    def test_no_bids_at_end_time(self, chain, auction, alice):
        chain.set_time(auction.end_time)
        with pytest.raises(AuctionExpired):
            bid(auction, alice, AT_RESERVE)
    
    def test_last_second_bid_accepted(self, chain, deployer, auction, alice, oracle):
        chain.set_time(auction.end_time - 1)
        feed = chain.get_contract(oracle.get_feed(NATIVE_ASSET))
        feed.update_answer(deployer, 2500 * 10**8)
        bid(auction, alice, AT_RESERVE)
        assert auction.highest_bidder == alice
    
    def test_stale_price_rejects_bid(self, chain, auction, alice):
        chain.advance(3601)
        with pytest.raises(StalePrice):
            bid(auction, alice, AT_RESERVE)
    
    def test_bid_for_another_address_rejected(self, chain, auction, alice, bob):
        with pytest.raises(UntrustedRelayer):
            auction.place_bid(bob, AT_RESERVE, value=AT_RESERVE, bidder=alice)
        
        assert auction.highest_bid == 0
        assert chain.balance_of(alice) == 10 * ETH
        assert chain.balance_of(bob) == 10 * ETH
    
    def test_zero_address_cannot_bid(self, chain, auction, alice):
        with pytest.raises(InvalidAddress):
            auction.place_bid(ZERO_ADDRESS, AT_RESERVE, value=AT_RESERVE)
        with pytest.raises(InvalidAddress):
            auction.place_bid(alice, AT_RESERVE, value=AT_RESERVE, bidder=ZERO_ADDRESS)
        
        assert auction.highest_bidder == ZERO_ADDRESS
        assert chain.balance_of(alice) == 10 * ETH


# =============================================================================
# Refund Tests
# =============================================================================


class TestRefunds:
    """Tests for outbid credits."""
    
    def test_outbid_credits_previous_bidder(self, chain, auction, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        
        assert auction.pending_withdrawal(alice) == AT_RESERVE
        assert auction.highest_bidder == bob
        event = chain.get_events("RefundCredited", auction.address)[-1]
        assert event["bidder"] == alice
        assert event["amount"] == AT_RESERVE
    
    def test_self_outbid_accumulates_credit(self, auction, alice):
        bid(auction, alice, AT_RESERVE)
        bid(auction, alice, 5 * ETH // 100)
        bid(auction, alice, 6 * ETH // 100)
        
        assert auction.pending_withdrawal(alice) == 9 * ETH // 100
    
    def test_highest_bid_never_decreases(self, auction, alice, bob):
        history = []
        for i, amount in enumerate([4, 3, 5, 5, 7, 6, 8]):
            bidder = alice if i % 2 == 0 else bob
            try:
                bid(auction, bidder, amount * ETH // 100)
            except (BidTooLow, BelowReserve):
                pass
            history.append(auction.highest_bid)
        
        assert history == sorted(history)
        assert auction.highest_bid == 8 * ETH // 100
    
    def test_total_owed_matches_balance(self, chain, auction, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        bid(auction, alice, 6 * ETH // 100)
        
        assert auction.total_owed() == chain.balance_of(auction.address)


# =============================================================================
# Settlement Tests
# =============================================================================


class TestSettlement:
    """Tests for settle()."""
    
    def test_settle_before_end(self, auction, alice):
        with pytest.raises(NotYetExpired):
            auction.settle(alice)
        assert not auction.ended
    
    def test_settle_without_bids_returns_asset(self, chain, auction, nft, seller, alice):
        chain.advance(DAY)
        assert auction.settle(alice) == (ZERO_ADDRESS, 0)
        
        assert nft.owner_of(1) == seller
        assert auction.ended
        assert auction.highest_bid == 0
        event = chain.get_events("AuctionEnded", auction.address)[-1]
        assert event["winner"] == ZERO_ADDRESS
        assert event["amount"] == 0
    
    def test_settle_with_winner(self, chain, auction, nft, seller, collector, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        chain.advance(DAY)
        
        assert auction.settle(alice) == (bob, 5 * ETH // 100)
        assert nft.owner_of(1) == bob
        
        fee = 5 * ETH // 100 * 2 // 100
        assert auction.pending_withdrawal(collector) == fee
        assert auction.pending_withdrawal(seller) == 5 * ETH // 100 - fee
    
    def test_settle_twice(self, chain, auction, alice):
        bid(auction, alice, AT_RESERVE)
        chain.advance(DAY)
        auction.settle(alice)
        
        events_before = len(chain.events)
        with pytest.raises(AlreadyEnded):
            auction.settle(alice)
        assert len(chain.events) == events_before
        assert auction.state == AuctionState.ENDED
    
    def test_no_bids_after_settlement(self, chain, auction, alice):
        chain.advance(DAY)
        auction.settle(alice)
        with pytest.raises(AlreadyEnded):
            bid(auction, alice, ETH)
    
    def test_settle_late_by_anyone(self, chain, auction, alice):
        bid(auction, alice, AT_RESERVE)
        chain.advance(30 * DAY)
        stranger = address_from_label("stranger")
        assert auction.settle(stranger) == (alice, AT_RESERVE)
    
    def test_zero_fee(self, chain, deployer, seller, nft, oracle, collector, alice):
        auction = open_auction(chain, deployer, seller, nft, oracle, collector, fee_percent=0)
        bid(auction, alice, AT_RESERVE)
        chain.advance(DAY)
        auction.settle(alice)
        
        assert auction.pending_withdrawal(collector) == 0
        assert auction.pending_withdrawal(seller) == AT_RESERVE
        kinds = [e["kind"] for e in chain.get_events("ProceedsCredited", auction.address)]
        assert kinds == ["seller"]


# =============================================================================
# Fee Split Tests
# =============================================================================


class TestFeeSplit:
    """Tests for split_proceeds()."""
    
    @pytest.mark.parametrize("amount", [1, 49, 99, 149, 10**18 + 7, 5 * 10**16])
    def test_fee_plus_net_is_amount(self, auction, amount):
        fee, net = auction.split_proceeds(amount)
        assert fee + net == amount
    
    def test_fee_rounds_down(self, auction):
        assert auction.split_proceeds(149) == (2, 147)
        assert auction.split_proceeds(49) == (0, 49)


# =============================================================================
# Withdrawal Tests
# =============================================================================


class TestWithdraw:
    """Tests for withdraw()."""
    
    def test_nothing_to_withdraw(self, auction, alice):
        with pytest.raises(NothingToWithdraw):
            auction.withdraw(alice)
    
    def test_outbid_bidder_withdraws(self, chain, auction, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        
        assert auction.withdraw(alice) == AT_RESERVE
        assert chain.balance_of(alice) == 10 * ETH
        assert auction.pending_withdrawal(alice) == 0
        with pytest.raises(NothingToWithdraw):
            auction.withdraw(alice)
    
    def test_withdraw_event(self, chain, auction, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        auction.withdraw(alice)
        
        event = chain.get_events("Withdrawn", auction.address)[-1]
        assert event["recipient"] == alice
        assert event["amount"] == AT_RESERVE
    
    def test_all_parties_withdraw_and_auction_is_empty(self, chain, auction, seller, collector, alice, bob):
        bid(auction, alice, AT_RESERVE)
        bid(auction, bob, 5 * ETH // 100)
        chain.advance(DAY)
        auction.settle(bob)
        
        for party in (alice, seller, collector):
            auction.withdraw(party)
        
        assert chain.balance_of(auction.address) == 0
        assert auction.total_owed() == 0
        assert chain.balance_of(seller) + chain.balance_of(collector) == 5 * ETH // 100


# =============================================================================
# Token Auction Tests
# =============================================================================


class TestTokenAuction:
    """Tests for auctions paid in a fungible token."""
    
    @pytest.fixture
    def usdc(self, chain, deployer, oracle):
        token = FungibleToken(chain, deployer, "USD Coin", "USDC", decimals=6)
        feed = MockPriceFeed(chain, deployer, decimals=8, initial_answer=10**8)
        oracle.set_feed(deployer, token.address, feed.address)
        return token
    
    @pytest.fixture
    def token_auction(self, chain, deployer, seller, nft, oracle, collector, usdc):
        return open_auction(chain, deployer, seller, nft, oracle, collector, payment_asset=usdc.address)
    
    def test_bid_pulls_tokens(self, deployer, usdc, token_auction, alice):
        usdc.mint(deployer, alice, 500 * 10**6)
        usdc.approve(alice, token_auction.address, 150 * 10**6)
        token_auction.place_bid(alice, 150 * 10**6)
        
        assert usdc.balance_of(token_auction.address) == 150 * 10**6
        assert usdc.allowance(alice, token_auction.address) == 0
    
    def test_attached_value_rejected(self, deployer, usdc, token_auction, alice):
        usdc.mint(deployer, alice, 500 * 10**6)
        usdc.approve(alice, token_auction.address, 150 * 10**6)
        with pytest.raises(UnexpectedValue):
            token_auction.place_bid(alice, 150 * 10**6, value=1)
    
    def test_failed_pull_aborts_bid(self, chain, deployer, usdc, token_auction, alice, bob):
        usdc.mint(deployer, alice, 500 * 10**6)
        usdc.approve(alice, token_auction.address, 150 * 10**6)
        token_auction.place_bid(alice, 150 * 10**6)
        
        usdc.mint(deployer, bob, 500 * 10**6)
        usdc.approve(bob, token_auction.address, 100 * 10**6)
        events_before = len(chain.events)
        with pytest.raises(InsufficientAllowance):
            token_auction.place_bid(bob, 200 * 10**6)
        
        assert token_auction.highest_bidder == alice
        assert token_auction.pending_withdrawal(alice) == 0
        assert usdc.balance_of(bob) == 500 * 10**6
        assert len(chain.events) == events_before
    
    def test_token_withdraw(self, deployer, usdc, token_auction, alice, bob):
        for bidder, amount in ((alice, 150), (bob, 200)):
            usdc.mint(deployer, bidder, 500 * 10**6)
            usdc.approve(bidder, token_auction.address, amount * 10**6)
            token_auction.place_bid(bidder, amount * 10**6)
        
        assert token_auction.withdraw(alice) == 150 * 10**6
        assert usdc.balance_of(alice) == 500 * 10**6


# =============================================================================
# View Tests
# =============================================================================


class TestViews:
    """Tests for read-only accessors."""
    
    def test_details(self, auction, seller, nft, alice):
        bid(auction, alice, AT_RESERVE)
        details = auction.details()
        
        assert isinstance(details, AuctionDetails)
        assert details.asset_contract == nft.address
        assert details.asset_id == 1
        assert details.seller == seller
        assert details.payment_asset == NATIVE_ASSET
        assert details.reserve_price_usd == RESERVE
        assert details.highest_bid == AT_RESERVE
        assert details.highest_bidder == alice
        assert not details.ended
    
    def test_derived_phases(self, chain, auction, alice):
        assert auction.is_biddable()
        assert not auction.awaiting_settlement()
        assert auction.time_remaining() == DAY
        
        chain.advance(DAY)
        assert not auction.is_biddable()
        assert auction.awaiting_settlement()
        assert auction.time_remaining() == 0
        
        auction.settle(alice)
        assert not auction.awaiting_settlement()
        assert auction.state == AuctionState.ENDED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
