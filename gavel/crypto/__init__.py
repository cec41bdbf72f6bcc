"""
Cryptographic primitives for Gavel.

This module provides:
- Keccak-256 hashing
- Key generation and management
- Digital signatures (ECDSA on secp256k1)
- Address derivation for accounts and deployed contracts

Design Notes:
-------------
Addresses follow the Ethereum convention: the last 20 bytes of a Keccak-256
digest, rendered as a lowercase 0x-prefixed hex string. Accounts derive their
address from a public key; contracts derive theirs from the deployer address
and the deployer's nonce, so the same deployment sequence always yields the
same addresses.

Signatures are used by the cross-chain entry point to authenticate relayed
bid messages against a trusted attester key.
"""

import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# The "no address" value; also the sentinel for the native currency
ZERO_ADDRESS = "0x" + "00" * 20


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).
    
    Used for: address derivation, message ids.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.
    
    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)
    
    @property
    def address(self) -> str:
        """Address derived from the public key."""
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.
    
    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.
    
    Args:
        private_key: 32-byte private key
        
    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    
    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


# =============================================================================
# Digital Signatures (ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a message hash using ECDSA on secp256k1.
    
    Args:
        message_hash: 32-byte hash of the message to sign
        private_key: 32-byte private key
        
    Returns:
        64-byte signature (r || s, each 32 bytes)
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    
    _v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)
    
    # Low-s normalization (EIP-2)
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s
    
    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")


def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ECDSA signature.
    
    Args:
        message_hash: 32-byte hash of the signed message
        signature: 64-byte signature (r || s)
        public_key: 64-byte public key (x || y)
        
    Returns:
        True if signature is valid, False otherwise
    """
    if len(message_hash) != 32 or len(signature) != 64 or len(public_key) != 64:
        return False
    
    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    if r < 1 or r >= SECP256K1_ORDER:
        return False
    if s < 1 or s >= SECP256K1_ORDER:
        return False
    
    expected = (
        int.from_bytes(public_key[:32], byteorder="big"),
        int.from_bytes(public_key[32:], byteorder="big"),
    )
    
    # No recovery id in the signature, so try both candidates
    for v in (27, 28):
        try:
            if secp256k1.ecdsa_raw_recover(message_hash, (v, r, s)) == expected:
                return True
        except Exception:
            continue
    return False


# =============================================================================
# Addresses
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    if len(address) != 42:  # 0x + 40 hex chars
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def normalize_address(address: str) -> str:
    """Lowercase an address so string comparison is identity."""
    return address.lower()


def address_from_public_key(public_key: bytes) -> str:
    """
    Derive address from public key.
    
    address = keccak256(public_key)[-20:]
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return bytes_to_hex(keccak256(public_key)[-20:])


def address_from_label(label: str) -> str:
    """Deterministic address for a human-readable label (demo and test accounts)."""
    return bytes_to_hex(keccak256(label.encode())[-20:])


def contract_address(deployer: str, nonce: int) -> str:
    """
    Address of the contract created by `deployer` at `nonce`.
    
    address = keccak256(deployer || nonce)[-20:]
    """
    data = hex_to_bytes(deployer) + nonce.to_bytes(8, byteorder="big")
    return bytes_to_hex(keccak256(data)[-20:])


__all__ = [
    "SECP256K1_ORDER",
    "ZERO_ADDRESS",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "private_key_to_public_key",
    "sign",
    "verify",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
    "normalize_address",
    "address_from_public_key",
    "address_from_label",
    "contract_address",
]
