"""
Address format validation.

Addresses are bech32 strings whose human-readable part is the configured
prefix (``terra`` by default) and whose payload decodes to 1..255 bytes.
Validation happens at write time only; the decision engine treats any
string it cannot resolve as "no membership".
"""

from bech32 import bech32_decode, bech32_encode, convertbits

from taxexempt.errors import InvalidAddressError
from taxexempt.schema import DEFAULT_ADDRESS_PREFIX

MAX_ADDRESS_LENGTH = 255


def validate_address(address: str, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    """
    Validate an address and return its raw bytes.

    Args:
        address: bech32 encoded address
        prefix: Expected human-readable part

    Returns:
        The decoded address bytes

    Raises:
        InvalidAddressError: If the address is empty, not bech32, carries
            the wrong prefix, is uppercase, or decodes to an invalid length
    """
    if not address or not address.strip():
        raise InvalidAddressError(
            address=address,
            reason="empty address string is not allowed",
        )

    hrp, data = bech32_decode(address)
    if hrp is None or data is None:
        raise InvalidAddressError(
            address=address,
            reason="decoding bech32 failed",
        )
    if address != address.lower():
        raise InvalidAddressError(
            address=address,
            reason="uppercase addresses are not accepted; use the lowercase form",
        )
    if hrp != prefix:
        raise InvalidAddressError(
            address=address,
            reason=f"invalid Bech32 prefix; expected {prefix}, got {hrp}",
        )

    raw = convertbits(data, 5, 8, False)
    if raw is None:
        raise InvalidAddressError(
            address=address,
            reason="decoding bech32 failed: invalid padding",
        )
    if len(raw) == 0:
        raise InvalidAddressError(address=address, reason="addresses cannot be empty")
    if len(raw) > MAX_ADDRESS_LENGTH:
        raise InvalidAddressError(
            address=address,
            reason=f"address max length is {MAX_ADDRESS_LENGTH}, got {len(raw)}",
        )
    return bytes(raw)


def is_valid_address(address: str, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bool:
    """Return True if ``address`` passes validate_address."""
    try:
        validate_address(address, prefix)
    except InvalidAddressError:
        return False
    return True


def encode_address(raw: bytes, prefix: str = DEFAULT_ADDRESS_PREFIX) -> str:
    """bech32-encode raw address bytes under ``prefix``."""
    data = convertbits(list(raw), 8, 5, True)
    return bech32_encode(prefix, data)
