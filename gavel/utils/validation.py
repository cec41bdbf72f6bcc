"""
Input Validation - Security-focused input sanitization.

Provides validation for all caller-supplied inputs to engine operations:
- Address format
- Unsigned integer bounds (amounts, durations, prices)
- Percentages
"""

from typing import Any, Tuple

from gavel.crypto import is_valid_address

# =============================================================================
# Constants
# =============================================================================

# Integer bounds (ledger words are 256-bit unsigned)
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1
MAX_PERCENT = 100


# =============================================================================
# Validation Functions
# =============================================================================


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    
    if not is_valid_address(address):
        return False, f"{name} is not a valid address: {address!r}"
    
    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.
    
    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value
        
    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; never a valid amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"
    
    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"
    
    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"
    
    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a token amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_positive(value: Any, name: str) -> Tuple[bool, str]:
    """Validate a strictly positive amount."""
    return validate_integer(value, name, 1, MAX_AMOUNT)


def validate_percent(value: Any, name: str = "fee_percent") -> Tuple[bool, str]:
    """Validate an integer percentage in [0, 100]."""
    return validate_integer(value, name, 0, MAX_PERCENT)


__all__ = [
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_positive",
    "validate_percent",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
    "MAX_PERCENT",
]
