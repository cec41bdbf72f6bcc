"""
Cross-chain bid entry point.

Bids originating on another ledger arrive as `CrossChainBid` messages,
delivered by any relayer. The relay protocol itself is outside this
module; what the engine trusts is:

1. A secp256k1 signature by the configured attester over the message id
2. The destination chain id matching this ledger
3. An owner-managed allowlist of (source_chain, source_sender) pairs
4. Exactly-once processing per message id

An accepted message becomes an ordinary `Auction.place_bid` sent by the
handler on behalf of the remote bidder; the factory must list the handler
as a trusted relayer. Refunds and winnings are therefore owed to the
remote bidder's address on this ledger.

Message Encoding:
----------------
    source_chain (8) || source_sender (20) || nonce (8) ||
    destination_chain (8) || auction (20) || bidder (20) || amount (32)

All integers big-endian. message_id = keccak256(encoding).
"""

from typing import Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gavel.core.chain import Ownable, atomic, checked_address
from gavel.core.errors import (
    DuplicateMessage,
    GavelError,
    InvalidSignature,
    UnknownAuction,
    UntrustedSource,
    ValidationError,
    WrongChain,
)
from gavel.core.oracle import NATIVE_ASSET
from gavel.crypto import ZERO_ADDRESS, bytes_to_hex, hex_to_bytes, is_valid_address, keccak256, sign, verify
from gavel.utils.logger import get_logger

logger = get_logger("bridge")

# Field widths of the canonical encoding
UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1


# =============================================================================
# Message
# =============================================================================


class CrossChainBid(BaseModel):
    """A bid relayed from another ledger."""
    
    model_config = ConfigDict(frozen=True)
    
    source_chain: int = Field(..., ge=0, le=UINT64_MAX, description="Originating chain id")
    source_sender: str = Field(..., description="Sending contract on the source chain")
    nonce: int = Field(..., ge=0, le=UINT64_MAX, description="Per-sender sequence number")
    destination_chain: int = Field(..., ge=0, le=UINT64_MAX, description="Chain id of the ledger holding the auction")
    auction: str = Field(..., description="Target auction on this chain")
    bidder: str = Field(..., description="Remote bidder; receives refunds and the asset")
    amount: int = Field(..., gt=0, le=UINT256_MAX, description="Bid in the payment asset's smallest unit")
    
    @field_validator("source_sender", "auction", "bidder")
    @classmethod
    def validate_address(cls, v):
        if not is_valid_address(v):
            raise ValueError(f"Invalid address: {v!r}")
        return v.lower()
    
    @field_validator("bidder")
    @classmethod
    def validate_bidder(cls, v):
        if v == ZERO_ADDRESS:
            raise ValueError("The zero address cannot bid")
        return v
    
    def encode(self) -> bytes:
        """Canonical byte encoding (what the attester signs the hash of)."""
        return (
            self.source_chain.to_bytes(8, byteorder="big")
            + hex_to_bytes(self.source_sender)
            + self.nonce.to_bytes(8, byteorder="big")
            + self.destination_chain.to_bytes(8, byteorder="big")
            + hex_to_bytes(self.auction)
            + hex_to_bytes(self.bidder)
            + self.amount.to_bytes(32, byteorder="big")
        )
    
    @property
    def message_id(self) -> bytes:
        return keccak256(self.encode())
    
    def sign(self, private_key: bytes) -> bytes:
        """Attest this message (64-byte r || s)."""
        return sign(self.message_id, private_key)


# =============================================================================
# Handler
# =============================================================================


class CrossChainBidHandler(Ownable):
    """
    Receives attested cross-chain bids and places them on local auctions.
    
    The handler must hold enough of each payment asset to fund the bids it
    relays (native balance or token balance on this chain).
    
    Attributes:
        factory: AuctionFactory whose registry defines valid targets
        attester_public_key: 64-byte key that must sign every message
        trusted_sources: Allowed (source_chain, source_sender) pairs
        processed: Hex ids of messages already delivered
    """
    
    def __init__(self, chain, deployer: str, factory: str, attester_public_key: bytes, owner=None):
        factory = checked_address(factory, "factory")
        if not isinstance(attester_public_key, bytes) or len(attester_public_key) != 64:
            raise ValidationError("attester_public_key must be 64 bytes")
        super().__init__(chain, deployer, owner)
        self.factory = factory
        self.attester_public_key = attester_public_key
        self.trusted_sources: Set[Tuple[int, str]] = set()
        self.processed: Set[str] = set()
    
    # =========================================================================
    # Allowlist
    # =========================================================================
    
    @atomic
    def allow_source(self, sender: str, source_chain: int, source_sender: str) -> None:
        self._only_owner(sender)
        source = (source_chain, checked_address(source_sender, "source_sender"))
        self.trusted_sources.add(source)
        self.emit("SourceAllowed", source_chain=source[0], source_sender=source[1])
    
    @atomic
    def revoke_source(self, sender: str, source_chain: int, source_sender: str) -> None:
        self._only_owner(sender)
        source = (source_chain, checked_address(source_sender, "source_sender"))
        if source not in self.trusted_sources:
            raise UntrustedSource(f"{source_sender} on chain {source_chain} is not allowed")
        self.trusted_sources.remove(source)
        self.emit("SourceRevoked", source_chain=source[0], source_sender=source[1])
    
    def is_trusted(self, source_chain: int, source_sender: str) -> bool:
        return (source_chain, source_sender.lower()) in self.trusted_sources
    
    def is_processed(self, message_id: bytes) -> bool:
        return bytes_to_hex(message_id) in self.processed
    
    # =========================================================================
    # Delivery
    # =========================================================================
    
    def receive_message(self, relayer: str, message: CrossChainBid, signature: bytes) -> bytes:
        """
        Deliver one relayed bid.
        
        Any failure, including the auction rejecting the bid, aborts the
        delivery; the message stays unprocessed and may be relayed again.
        
        Returns:
            The message id
        """
        try:
            return self._deliver(relayer, message, signature)
        except GavelError as e:
            logger.warning(f"Rejected cross-chain bid from chain {message.source_chain}: {e}")
            raise
    
    @atomic
    def _deliver(self, relayer: str, message: CrossChainBid, signature: bytes) -> bytes:
        checked_address(relayer, "relayer")
        message_id = message.message_id
        key = bytes_to_hex(message_id)
        
        if not verify(message_id, signature, self.attester_public_key):
            raise InvalidSignature(f"Message {key[:18]}... not signed by the attester")
        if message.destination_chain != self.chain.chain_id:
            raise WrongChain(f"Message {key[:18]}... is for chain {message.destination_chain}, this is {self.chain.chain_id}")
        if not self.is_trusted(message.source_chain, message.source_sender):
            raise UntrustedSource(f"{message.source_sender} on chain {message.source_chain} is not allowed")
        if key in self.processed:
            raise DuplicateMessage(f"Message {key[:18]}... already processed")
        
        factory = self.chain.get_contract(self.factory)
        if not factory.is_auction(message.auction):
            raise UnknownAuction(f"{message.auction} is not a registered auction")
        
        self.processed.add(key)
        
        auction = self.chain.get_contract(message.auction)
        if auction.payment_asset == NATIVE_ASSET:
            auction.place_bid(self.address, message.amount, value=message.amount, bidder=message.bidder)
        else:
            token = self.chain.get_contract(auction.payment_asset)
            token.approve(self.address, auction.address, message.amount)
            auction.place_bid(self.address, message.amount, bidder=message.bidder)
        
        self.emit(
            "MessageProcessed",
            message_id=key,
            auction=message.auction,
            bidder=message.bidder,
            amount=message.amount,
        )
        logger.debug(f"Relayed bid {key[:18]}... by {relayer[:10]}...: {message.amount} on {message.auction[:10]}...")
        return message_id
