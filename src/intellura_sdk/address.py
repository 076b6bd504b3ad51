"""
Wallet address normalisation (EIP-55 mixed-case checksum).

Addresses coming from a wallet provider may be lower-case, upper-case or
checksummed. The SDK keeps one canonical checksummed form for display and
compares addresses case-insensitively.

Address Format:
- Raw:      0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed
- Checksum: 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed
"""

from __future__ import annotations

from typing import Optional

from Crypto.Hash import keccak

_HEX_DIGITS = frozenset("0123456789abcdef")


def _keccak256(data: bytes) -> bytes:
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def _hex_body(address: str) -> str:
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")
    stripped = address.strip()
    if stripped[:2].lower() != "0x":
        raise ValueError(f"Address must start with 0x: {address!r}")
    body = stripped[2:].lower()
    if len(body) != 40:
        raise ValueError(f"Address hex part must be 40 characters, got {len(body)}")
    if not set(body) <= _HEX_DIGITS:
        raise ValueError(f"Invalid hex characters in address: {address!r}")
    return body


def to_checksum_address(address: str) -> str:
    """
    Convert an address to its EIP-55 checksummed form.

    Raises:
        ValueError: If the address is not a 20-byte hex string
    """
    body = _hex_body(address)
    address_hash = _keccak256(body.encode("ascii")).hex()

    checksummed = []
    for i, char in enumerate(body):
        if char in "0123456789":
            checksummed.append(char)
        elif int(address_hash[i], 16) >= 8:
            checksummed.append(char.upper())
        else:
            checksummed.append(char)

    return "0x" + "".join(checksummed)


def is_checksum_valid(address: str) -> bool:
    """
    Verify a mixed-case address against its checksum.

    All-lowercase and all-uppercase addresses carry no checksum and are valid.
    """
    try:
        body = address.strip()[2:]
        _hex_body(address)
    except (ValueError, AttributeError):
        return False
    if body == body.lower() or body == body.upper():
        return True
    return address.strip() == to_checksum_address(address)


def normalize_address(address: str) -> str:
    """
    Canonical form used throughout the SDK.

    Raises:
        ValueError: If the address is malformed or its mixed-case checksum is wrong
    """
    if not is_checksum_valid(address):
        raise ValueError(f"Invalid address or checksum: {address!r}")
    return to_checksum_address(address)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()


def short_address(address: str) -> str:
    """``0x5aAe…eAed`` style shortening for display."""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:6]}…{address[-4:]}"
