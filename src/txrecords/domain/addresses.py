from __future__ import annotations

import re

from eth_utils import to_checksum_address

from .errors import InvalidAddress
from .value_types import ChecksummedAddress

ADDRESS_HEX_LEN = 40          # 20 bytes
_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def _strip_prefix(s: str) -> str:
    return s[2:] if s[:2] in ("0x", "0X") else s


def normalize(raw: object) -> ChecksummedAddress:
    """
    Return the EIP-55 checksummed form of a raw 20-byte hex address.

    The `0x`/`0X` prefix is optional and any casing is accepted; casing only
    encodes a checksum over the same bytes, so it is recomputed rather than
    verified. Invalid input always raises InvalidAddress; there is no falsy
    return value to test for.
    """
    if not isinstance(raw, str):
        raise InvalidAddress(raw, "not_a_string")
    body = _strip_prefix(raw)
    if not body:
        raise InvalidAddress(raw, "empty")
    if not _HEX_RE.fullmatch(body):
        raise InvalidAddress(raw, "invalid_hex")
    if len(body) != ADDRESS_HEX_LEN:
        raise InvalidAddress(raw, "wrong_length")
    return ChecksummedAddress(to_checksum_address("0x" + body.lower()))


def normalize_optional(raw: object | None) -> ChecksummedAddress | None:
    """`None` stays `None`; anything else goes through normalize()."""
    if raw is None:
        return None
    return normalize(raw)


def is_canonical(raw: object) -> bool:
    """True if `raw` is already the exact checksummed string (prefix included)."""
    try:
        return normalize(raw) == raw
    except InvalidAddress:
        return False
