"""
Identity codec for merchant public keys.

Decodes NIP-19 npub identifiers (Bech32) into the 64-character hex form the
order router expects.
"""

from typing import List
import string
import bech32
import structlog

from ..errors import InvalidIdentifier

logger = structlog.get_logger(__name__)


NPUB_HRP = "npub"
NPUB_PREFIX = NPUB_HRP + "1"
CHECKSUM_LENGTH = 6
PUBKEY_HEX_LENGTH = 64


def _to_values(data: str) -> List[int]:
    """Map Bech32 data characters to their 5-bit values."""
    values = []
    for char in data:
        value = bech32.CHARSET.find(char)
        if value == -1:
            raise InvalidIdentifier(f"Invalid bech32 character: {char!r}")
        values.append(value)
    return values


def has_npub_prefix(identifier: str) -> bool:
    return identifier.lower().startswith(NPUB_PREFIX)


def decode_npub(identifier: str) -> str:
    """
    Decode an npub identifier to lowercase hex.

    Identifiers without the npub prefix are returned unchanged; length
    validation is left to the caller. The trailing checksum is dropped
    without being verified, and padding bits that do not fill a whole byte
    are discarded.

    Args:
        identifier: npub1... string or raw hex public key

    Returns:
        Hex encoding of the decoded key bytes

    Raises:
        InvalidIdentifier if a character is outside the Bech32 alphabet
    """
    if not has_npub_prefix(identifier):
        return identifier

    values = _to_values(identifier[len(NPUB_PREFIX):].lower())
    payload = values[:-CHECKSUM_LENGTH] if len(values) > CHECKSUM_LENGTH else []

    acc = 0
    bits = 0
    decoded = bytearray()
    for value in payload:
        acc = (acc << 5) | value
        bits += 5
        while bits >= 8:
            bits -= 8
            decoded.append((acc >> bits) & 0xFF)
        acc &= (1 << bits) - 1

    return decoded.hex()


def verify_checksum(identifier: str) -> bool:
    """
    Verify the BIP-173 checksum of an npub identifier.

    Returns False for identifiers without the npub prefix, with characters
    outside the alphabet, or too short to carry a checksum.
    """
    hrp, data = bech32.bech32_decode(identifier.lower())
    return hrp == NPUB_HRP and data is not None


def to_pubkey_hex(identifier: str, strict: bool = False) -> str:
    """
    Resolve a merchant identifier to a 32-byte public key in hex.

    Args:
        identifier: npub1... string or 64-character hex key
        strict: Also require a valid Bech32 checksum for npub input

    Returns:
        Lowercase 64-character hex public key

    Raises:
        InvalidIdentifier if the identifier does not resolve to 32 bytes
    """
    identifier = identifier.strip()

    if strict and has_npub_prefix(identifier) and not verify_checksum(identifier):
        logger.info("identifier_checksum_rejected")
        raise InvalidIdentifier("Invalid npub checksum")

    pubkey_hex = decode_npub(identifier)

    if len(pubkey_hex) != PUBKEY_HEX_LENGTH or not all(c in string.hexdigits for c in pubkey_hex):
        raise InvalidIdentifier("Invalid npub or public key")

    return pubkey_hex.lower()


__all__ = [
    "NPUB_PREFIX",
    "decode_npub",
    "verify_checksum",
    "to_pubkey_hex",
]
