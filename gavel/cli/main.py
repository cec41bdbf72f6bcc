"""
Gavel CLI - Command Line Interface for the Gavel auction engine

Main entry point for all CLI commands.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import click

from gavel import __version__
from gavel.core.config import EngineConfig, config_to_dict, load_config
from gavel.core.errors import GavelError
from gavel.utils.logger import setup_logging

# Smallest units per whole native coin
WEI = 10**18

SCENARIOS = ("basic", "no-bids", "outbid", "cross-chain")


def to_units(amount: str, decimals: int = 18) -> int:
    """Parse a decimal string ("0.05") into integer smallest units."""
    try:
        value = Decimal(amount) * (Decimal(10) ** decimals)
    except InvalidOperation:
        raise click.BadParameter(f"Not a number: {amount}")
    if value < 0 or value != value.to_integral_value():
        raise click.BadParameter(f"{amount} is not representable with {decimals} decimals")
    return int(value)


def fmt_units(amount: int, decimals: int = 18) -> str:
    """Format integer smallest units as a decimal string."""
    return f"{(Decimal(amount) / (Decimal(10) ** decimals)).normalize():f}"


def fmt_usd(amount: int) -> str:
    return f"${Decimal(amount) / Decimal(WEI):,.2f}"


class Marketplace:
    """
    A fully wired local deployment: feed, oracle, asset registry, auction
    template and factory on a fresh chain.
    """

    def __init__(self, cfg: EngineConfig, eth_usd: int = 2500, start_time: Optional[int] = None):
        from gavel.core.assets import AssetRegistry
        from gavel.core.auction import Auction
        from gavel.core.chain import Chain
        from gavel.core.factory import AuctionFactory, FactoryConfig
        from gavel.core.oracle import MockPriceFeed, PriceOracle
        from gavel.crypto import address_from_label

        self.chain = Chain(start_time=start_time, chain_id=cfg.chain_id)
        self.deployer = address_from_label("deployer")
        self.treasury = address_from_label("treasury")

        self.feed = MockPriceFeed(
            self.chain, self.deployer,
            decimals=8,
            initial_answer=eth_usd * 10**8,
            description="ETH / USD",
        )
        self.oracle = PriceOracle(
            self.chain, self.deployer,
            native_feed=self.feed.address,
            staleness_bound=cfg.staleness_bound,
        )
        self.nft = AssetRegistry(self.chain, self.deployer, "Gavel Lots", "LOT")
        self.template = Auction(self.chain, self.deployer)
        self.factory = AuctionFactory(
            self.chain, self.deployer,
            FactoryConfig(
                auction_template=self.template.address,
                oracle=self.oracle.address,
                fee_collector=self.treasury,
                fee_percent=cfg.fee_percent,
                owner=self.deployer,
                min_duration=cfg.min_auction_duration,
            ),
        )

    def list_item(self, seller: str, uri: str, duration: int, reserve_usd: int, payment_asset: Optional[str] = None):
        """Mint an item to `seller`, approve the factory and open an auction for it."""
        from gavel.core.oracle import NATIVE_ASSET

        token_id = self.nft.mint(self.deployer, seller, uri)
        self.nft.approve_for_auction(seller, self.factory.address, token_id)
        address = self.factory.create_auction(
            seller,
            self.nft.address,
            token_id,
            payment_asset or NATIVE_ASSET,
            duration,
            reserve_usd * WEI,
        )
        return self.chain.get_contract(address), token_id


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="JSON or TOML config file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, config_path):
    """Gavel - escrowed auctions with USD reserve prices"""
    try:
        cfg = load_config(config_path)
    except GavelError as e:
        raise click.ClickException(str(e))

    level = logging.DEBUG if debug else getattr(logging, cfg.log_level)
    setup_logging(
        level=level,
        log_dir=str(cfg.log_dir),
        log_to_file=cfg.log_to_file,
        levels=cfg.log_levels,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


# =============================================================================
# Demo Command
# =============================================================================


def _report(label: str, receipt) -> None:
    if receipt.success:
        click.echo(f"  ✓ {label}")
    else:
        click.echo(f"  ✗ {label} rejected: {receipt.code.name} ({receipt.error})")


def _settle_and_withdraw(market: Marketplace, auction, parties) -> None:
    market.chain.advance(auction.time_remaining())
    click.echo("⚖️  Settling...")
    receipt = market.chain.transact(auction.settle, market.deployer)
    _report("Settled", receipt)
    winner, amount = receipt.return_value
    owner = market.nft.owner_of(auction.asset_id)
    click.echo(f"  ✓ Winner: {winner[:10]}... for {fmt_units(amount)} ETH")
    click.echo(f"  ✓ Item now held by {owner[:10]}...")
    click.echo()

    click.echo("💸 Withdrawals...")
    for name, address in parties:
        credit = auction.pending_withdrawal(address)
        if credit:
            auction.withdraw(address)
            click.echo(f"  ✓ {name} withdrew {fmt_units(credit)} ETH")
    click.echo()


@cli.command("demo")
@click.option("--scenario", default="basic", type=click.Choice(SCENARIOS), help="Demo scenario to run")
@click.pass_context
def demo(ctx, scenario):
    """Run an end-to-end auction on a local chain"""
    from gavel.crypto import address_from_label

    cfg = ctx.obj["config"]

    click.echo("=" * 60)
    click.echo(f"  GAVEL - DEMO ({scenario})")
    click.echo("=" * 60)
    click.echo()

    click.echo("📦 Deploying feed, oracle, registry and factory...")
    market = Marketplace(cfg)
    seller = address_from_label("seller")
    alice = address_from_label("alice")
    bob = address_from_label("bob")
    for account in (alice, bob):
        market.chain.fund(account, 10 * WEI)
    click.echo(f"  ✓ ETH/USD feed at $2,500.00, fee {cfg.fee_percent}%")
    click.echo()

    click.echo("🏷️  Seller lists an item (reserve $100, 24h)...")
    auction, token_id = market.list_item(seller, "ipfs://gavel/lot/1", 86400, 100)
    click.echo(f"  ✓ Auction #{market.factory.index_of(auction.address)} at {auction.address}")
    click.echo(f"  ✓ Token {token_id} escrowed by auction")
    click.echo()

    if scenario == "basic":
        click.echo("🔨 Alice bids 0.04 ETH (= $100, the reserve)...")
        _report("Alice's bid", market.chain.transact(auction.place_bid, alice, 4 * WEI // 100, value=4 * WEI // 100))
        click.echo("🔨 Bob bids the same 0.04 ETH...")
        _report("Bob's equal bid", market.chain.transact(auction.place_bid, bob, 4 * WEI // 100, value=4 * WEI // 100))
        click.echo("🔨 Seller tries to bid on their own item...")
        _report("Seller's own bid", market.chain.transact(auction.place_bid, seller, WEI, value=WEI))
        click.echo()
        _settle_and_withdraw(market, auction, [("Seller", seller), ("Treasury", market.treasury)])

    elif scenario == "no-bids":
        click.echo("⏳ Nobody bids...")
        click.echo()
        _settle_and_withdraw(market, auction, [])
        click.echo(f"  ✓ Seller has the item back: {market.nft.owner_of(token_id) == seller}")
        click.echo()

    elif scenario == "outbid":
        click.echo("🔨 Alice bids 0.04 ETH, Bob bids 0.05 ETH...")
        _report("Alice's bid", market.chain.transact(auction.place_bid, alice, 4 * WEI // 100, value=4 * WEI // 100))
        _report("Bob's bid", market.chain.transact(auction.place_bid, bob, 5 * WEI // 100, value=5 * WEI // 100))
        click.echo(f"  ✓ Alice credited {fmt_units(auction.pending_withdrawal(alice))} ETH")
        click.echo()
        fee, net = auction.split_proceeds(auction.highest_bid)
        click.echo(f"📐 Split: fee {fmt_units(fee)} ETH, seller {fmt_units(net)} ETH")
        click.echo()
        _settle_and_withdraw(
            market, auction,
            [("Alice", alice), ("Seller", seller), ("Treasury", market.treasury)],
        )

    elif scenario == "cross-chain":
        from gavel.core.bridge import CrossChainBid, CrossChainBidHandler
        from gavel.crypto import generate_keypair

        attester = generate_keypair()
        remote_sender = address_from_label("remote-sender")
        remote_bidder = address_from_label("remote-bidder")
        handler = CrossChainBidHandler(market.chain, market.deployer, market.factory.address, attester.public_key)
        handler.allow_source(market.deployer, 137, remote_sender)
        market.factory.set_relayer(market.deployer, handler.address, True)
        market.chain.fund(handler.address, WEI)
        click.echo(f"🌉 Handler at {handler.address[:10]}... trusts chain 137")

        message = CrossChainBid(
            source_chain=137,
            source_sender=remote_sender,
            nonce=0,
            destination_chain=market.chain.chain_id,
            auction=auction.address,
            bidder=remote_bidder,
            amount=6 * WEI // 100,
        )
        signature = message.sign(attester.private_key)
        _report("Relayed bid of 0.06 ETH", market.chain.transact(handler.receive_message, bob, message, signature))
        _report("Replayed message", market.chain.transact(handler.receive_message, bob, message, signature))
        click.echo()
        _settle_and_withdraw(market, auction, [("Seller", seller), ("Treasury", market.treasury)])

    click.echo("📊 Final Statistics:")
    click.echo(f"  Factory: {market.factory.get_auction_count()} auctions")
    click.echo(f"  Auction: {auction.stats()}")
    click.echo(f"  Chain: {market.chain.stats()}")
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Quote Command
# =============================================================================


@cli.command("quote")
@click.argument("amount")
@click.option("--price", default="2500", help="Feed price in USD per whole coin")
@click.option("--feed-decimals", default=8, type=int, help="Feed precision")
@click.option("--asset-decimals", default=18, type=int, help="Payment asset precision")
@click.option("--reserve", default=None, help="Reserve in USD to compare against")
@click.pass_context
def quote(ctx, amount, price, feed_decimals, asset_decimals, reserve):
    """Convert AMOUNT of a payment asset into USD"""
    from gavel.core.assets import FungibleToken
    from gavel.core.chain import Chain
    from gavel.core.oracle import NATIVE_ASSET, MockPriceFeed, PriceOracle
    from gavel.crypto import address_from_label

    cfg = ctx.obj["config"]
    units = to_units(amount, asset_decimals)
    answer = to_units(price, feed_decimals)

    chain = Chain(chain_id=cfg.chain_id)
    deployer = address_from_label("deployer")
    feed = MockPriceFeed(chain, deployer, decimals=feed_decimals, initial_answer=answer)

    if asset_decimals == 18:
        oracle = PriceOracle(chain, deployer, native_feed=feed.address, staleness_bound=cfg.staleness_bound)
        asset = NATIVE_ASSET
    else:
        token = FungibleToken(chain, deployer, "Quote Token", "QT", decimals=asset_decimals)
        oracle = PriceOracle(chain, deployer, staleness_bound=cfg.staleness_bound)
        oracle.set_feed(deployer, token.address, feed.address)
        asset = token.address

    try:
        usd = oracle.convert(asset, units)
    except GavelError as e:
        raise click.ClickException(str(e))

    click.echo(f"{amount} @ ${price} = {fmt_usd(usd)}")
    click.echo(f"  USD (18 decimals): {usd}")
    if reserve is not None:
        reserve_units = to_units(reserve, 18)
        verdict = "meets" if usd >= reserve_units else "is below"
        click.echo(f"  Bid {verdict} reserve of {fmt_usd(reserve_units)}")


# =============================================================================
# Keygen Command
# =============================================================================


@cli.command("keygen")
@click.option("--show-private", is_flag=True, help="Also print the private key")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def keygen(show_private, as_json):
    """Generate a secp256k1 keypair (e.g. for a cross-chain attester)"""
    from gavel.crypto import bytes_to_hex, generate_keypair

    kp = generate_keypair()
    data = {
        "address": kp.address,
        "public_key": bytes_to_hex(kp.public_key),
    }
    if show_private:
        data["private_key"] = bytes_to_hex(kp.private_key)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"✓ Address:     {data['address']}")
    click.echo(f"  Public key:  {data['public_key']}")
    if show_private:
        click.echo(f"  Private key: {data['private_key']}")
        click.echo("  ⚠️  Store the private key securely - it cannot be recovered!")


# =============================================================================
# Stats Command
# =============================================================================


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show engine configuration and a fresh deployment's statistics"""
    cfg = ctx.obj["config"]
    market = Marketplace(cfg)

    click.echo("Gavel Engine Statistics")
    click.echo("-" * 40)
    click.echo(f"  Version: {__version__}")
    click.echo("  Modules: Chain, Assets, Oracle, Auction, Factory, Bridge")
    for key, value in config_to_dict(cfg).items():
        click.echo(f"  {key}: {value}")
    click.echo(f"  Oracle: {market.oracle.stats()}")
    click.echo(f"  Factory: {market.factory.stats()}")


if __name__ == "__main__":
    cli()
