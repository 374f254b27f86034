"""
Account handle and payee address normalization.
"""

ADDRESS_PREFIX = "0x"
ADDRESS_LENGTH = 42


def normalize_handle(handle: str) -> str:
    """Canonical form of an external account handle. Idempotent."""
    return (handle or "").strip().lower()


def normalize_address(address: str) -> str:
    """Canonical form of a payee address. Idempotent."""
    return (address or "").strip().lower()


def is_valid_address(address: str) -> bool:
    """True when `address` carries the payee-address prefix and the canonical length."""
    normalized = normalize_address(address)
    return normalized.startswith(ADDRESS_PREFIX) and len(normalized) == ADDRESS_LENGTH
