"""
Engine errors for Gavel.

Every rejection carries a stable ReasonCode so callers (CLI, relays,
presentation layers) can render a specific explanation. Errors fall into
three families:

- ValidationError: malformed input (zero amount, bad address, fee out of range)
- PreconditionError: expected outcomes of a well-formed call made at the
  wrong time or by the wrong party (expired, below reserve, bid too low)
- ExternalDependencyError: a collaborator refused or returned unusable data
  (stale price, asset transfer rejected)

All of them abort the enclosing atomic operation; none leave partial state.
"""

from enum import IntEnum
from typing import Optional


class ReasonCode(IntEnum):
    """Stable reason codes for rejected operations."""
    # Validation (1xx)
    INVALID_ADDRESS = 100
    ZERO_AMOUNT = 101
    INVALID_AMOUNT = 102
    INVALID_FEE_PERCENT = 103
    DURATION_TOO_SHORT = 104
    INVALID_RESERVE = 105
    VALUE_MISMATCH = 106
    UNEXPECTED_VALUE = 107
    NO_FEED_CONFIGURED = 108
    INDEX_OUT_OF_RANGE = 109
    INVALID_TIME = 110
    UNKNOWN_CONTRACT = 111
    UNKNOWN_ASSET = 112
    WRONG_CHAIN = 113

    # Preconditions (2xx)
    UNAUTHORIZED = 200
    ALREADY_INITIALIZED = 201
    NOT_INITIALIZED = 202
    AUCTION_EXPIRED = 203
    ALREADY_ENDED = 204
    NOT_YET_EXPIRED = 205
    SELLER_CANNOT_BID = 206
    BELOW_RESERVE = 207
    BID_TOO_LOW = 208
    NOTHING_TO_WITHDRAW = 209
    REENTRANCY = 210
    NOT_TOKEN_OWNER = 211
    NOT_APPROVED = 212
    NONEXISTENT_TOKEN = 213
    INSUFFICIENT_BALANCE = 214
    INSUFFICIENT_ALLOWANCE = 215
    UNTRUSTED_SOURCE = 216
    DUPLICATE_MESSAGE = 217
    UNKNOWN_AUCTION = 218
    UNTRUSTED_RELAYER = 219

    # External dependencies (3xx)
    STALE_PRICE = 300
    INVALID_PRICE = 301
    TRANSFER_REJECTED = 302
    INVALID_SIGNATURE = 303


class GavelError(Exception):
    """Base class for every engine rejection."""

    code: Optional[ReasonCode] = None
    default_message = "Operation rejected"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.code.name}: {self.message}"


class ValidationError(GavelError):
    """Malformed input; never retried automatically."""


class PreconditionError(GavelError):
    """Well-formed call rejected by the current state."""


class ExternalDependencyError(GavelError):
    """A collaborator failed or returned unusable data."""


# =============================================================================
# Validation
# =============================================================================


class InvalidAddress(ValidationError):
    code = ReasonCode.INVALID_ADDRESS
    default_message = "Invalid address"


class ZeroAmount(ValidationError):
    code = ReasonCode.ZERO_AMOUNT
    default_message = "Amount must be greater than zero"


class InvalidAmount(ValidationError):
    code = ReasonCode.INVALID_AMOUNT
    default_message = "Invalid amount"


class InvalidFeePercent(ValidationError):
    code = ReasonCode.INVALID_FEE_PERCENT
    default_message = "Fee percent must be within [0, 100]"


class DurationTooShort(ValidationError):
    code = ReasonCode.DURATION_TOO_SHORT
    default_message = "Duration below configured minimum"


class InvalidReserve(ValidationError):
    code = ReasonCode.INVALID_RESERVE
    default_message = "Reserve price must be greater than zero"


class ValueMismatch(ValidationError):
    code = ReasonCode.VALUE_MISMATCH
    default_message = "Attached value must equal bid amount"


class UnexpectedValue(ValidationError):
    code = ReasonCode.UNEXPECTED_VALUE
    default_message = "Token auctions do not accept native value"


class NoFeedConfigured(ValidationError):
    code = ReasonCode.NO_FEED_CONFIGURED
    default_message = "No price feed configured for asset"


class IndexOutOfRange(ValidationError):
    code = ReasonCode.INDEX_OUT_OF_RANGE
    default_message = "Index out of range"


class InvalidTime(ValidationError):
    code = ReasonCode.INVALID_TIME
    default_message = "Ledger time cannot move backwards"


class UnknownContract(ValidationError):
    code = ReasonCode.UNKNOWN_CONTRACT
    default_message = "No contract deployed at address"


class UnknownAsset(ValidationError):
    code = ReasonCode.UNKNOWN_ASSET
    default_message = "Asset decimals cannot be resolved"


class WrongChain(ValidationError):
    code = ReasonCode.WRONG_CHAIN
    default_message = "Message is addressed to another chain"


# =============================================================================
# Preconditions
# =============================================================================


class Unauthorized(PreconditionError):
    code = ReasonCode.UNAUTHORIZED
    default_message = "Caller is not the owner"


class AlreadyInitialized(PreconditionError):
    code = ReasonCode.ALREADY_INITIALIZED
    default_message = "Already initialized"


class NotInitialized(PreconditionError):
    code = ReasonCode.NOT_INITIALIZED
    default_message = "Auction not initialized"


class AuctionExpired(PreconditionError):
    code = ReasonCode.AUCTION_EXPIRED
    default_message = "Auction expired"


class AlreadyEnded(PreconditionError):
    code = ReasonCode.ALREADY_ENDED
    default_message = "Auction already ended"


class NotYetExpired(PreconditionError):
    code = ReasonCode.NOT_YET_EXPIRED
    default_message = "Auction not ended"


class SellerCannotBid(PreconditionError):
    code = ReasonCode.SELLER_CANNOT_BID
    default_message = "Seller cannot bid"


class BelowReserve(PreconditionError):
    code = ReasonCode.BELOW_RESERVE
    default_message = "Below reserve price"


class BidTooLow(PreconditionError):
    code = ReasonCode.BID_TOO_LOW
    default_message = "Bid too low"


class NothingToWithdraw(PreconditionError):
    code = ReasonCode.NOTHING_TO_WITHDRAW
    default_message = "Nothing to withdraw"


class Reentrancy(PreconditionError):
    code = ReasonCode.REENTRANCY
    default_message = "Reentrant call"


class NotTokenOwner(PreconditionError):
    code = ReasonCode.NOT_TOKEN_OWNER
    default_message = "Not the owner"


class NotApproved(PreconditionError):
    code = ReasonCode.NOT_APPROVED
    default_message = "Caller is not owner nor approved"


class NonexistentToken(PreconditionError):
    code = ReasonCode.NONEXISTENT_TOKEN
    default_message = "Token does not exist"


class InsufficientBalance(PreconditionError):
    code = ReasonCode.INSUFFICIENT_BALANCE
    default_message = "Insufficient balance"


class InsufficientAllowance(PreconditionError):
    code = ReasonCode.INSUFFICIENT_ALLOWANCE
    default_message = "Insufficient allowance"


class UntrustedSource(PreconditionError):
    code = ReasonCode.UNTRUSTED_SOURCE
    default_message = "Source chain or sender not allowlisted"


class DuplicateMessage(PreconditionError):
    code = ReasonCode.DUPLICATE_MESSAGE
    default_message = "Message already processed"


class UnknownAuction(PreconditionError):
    code = ReasonCode.UNKNOWN_AUCTION
    default_message = "Auction not registered in factory"


class UntrustedRelayer(PreconditionError):
    code = ReasonCode.UNTRUSTED_RELAYER
    default_message = "Only trusted relayers may bid on behalf of another address"


# =============================================================================
# External dependencies
# =============================================================================


class StalePrice(ExternalDependencyError):
    code = ReasonCode.STALE_PRICE
    default_message = "Price feed is stale"


class InvalidPrice(ExternalDependencyError):
    code = ReasonCode.INVALID_PRICE
    default_message = "Price feed reported a non-positive price"


class TransferRejected(ExternalDependencyError):
    code = ReasonCode.TRANSFER_REJECTED
    default_message = "Recipient rejected transfer"


class InvalidSignature(ExternalDependencyError):
    code = ReasonCode.INVALID_SIGNATURE
    default_message = "Message signature does not match attester"
