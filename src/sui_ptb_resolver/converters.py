"""Conversions between Sui text forms (0x addresses, base58 digests) and raw bytes."""

from __future__ import annotations

import re
import struct

import base58

from sui_ptb_resolver.constants import ADDRESS_LENGTH
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.models import ObjectRef

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
_ADDR_RE = re.compile(r"0x[0-9a-fA-F]{1,64}")


def normalize_address(addr: str) -> str:
    """
    Canonicalize an address as 32-byte (64 hex) lowercase with 0x prefix.
    """
    s = addr.strip().lower()
    h = s[2:] if s.startswith("0x") else s
    if not _HEX_RE.match(h) or len(h) > ADDRESS_LENGTH * 2:
        raise ValidationError("address", f"not a Sui address: {addr!r}")
    return "0x" + h.rjust(ADDRESS_LENGTH * 2, "0")


def normalize_type_string(type_str: str) -> str:
    """
    Pad every `0x...` address literal in a Move type string to 32 bytes.

    "0x2::coin::Coin<0x2::sui::SUI>" -> "0x000...0002::coin::Coin<0x000...0002::sui::SUI>"
    """
    return _ADDR_RE.sub(lambda m: normalize_address(m.group(0)), type_str.strip())


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def bytes_to_address(data: bytes | bytearray | list[int]) -> str:
    raw = bytes(data)
    if len(raw) != ADDRESS_LENGTH:
        raise ValidationError("address", f"expected {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return "0x" + raw.hex()


def bytes_to_hex(data: bytes, prefix: bool = True) -> str:
    return ("0x" if prefix else "") + bytes(data).hex()


def hex_to_bytes(text: str) -> bytes:
    s = text.strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise ValidationError("hex", f"{text!r}: {e}") from e


def digest_to_bytes(digest: str | bytes | list[int]) -> bytes:
    """Sui JSON-RPC renders object digests as base58; BCS carries the raw 32 bytes."""
    if isinstance(digest, (bytes, bytearray)):
        return bytes(digest)
    if isinstance(digest, list):
        return bytes(digest)
    try:
        return base58.b58decode(digest)
    except ValueError as e:
        raise ValidationError("digest", f"not base58: {digest!r}") from e


def bytes_to_digest(data: bytes) -> str:
    return base58.b58encode(bytes(data)).decode("ascii")


def pack_object_ref(ref: ObjectRef) -> bytes:
    """Pack an object reference as ``id(32) ++ version(u64 LE) ++ digest``."""
    if len(ref.object_id) != ADDRESS_LENGTH:
        raise ValidationError("object_id", f"expected {ADDRESS_LENGTH} bytes, got {len(ref.object_id)}")
    return bytes(ref.object_id) + struct.pack("<Q", ref.version) + bytes(ref.digest)


def unpack_object_ref(data: bytes) -> ObjectRef:
    """Inverse of pack_object_ref; the digest is whatever follows the version."""
    if len(data) < ADDRESS_LENGTH + 8:
        raise MalformedEncoding("ObjectRef", f"need at least {ADDRESS_LENGTH + 8} bytes, got {len(data)}")
    (version,) = struct.unpack_from("<Q", data, ADDRESS_LENGTH)
    return ObjectRef(
        object_id=bytes(data[:ADDRESS_LENGTH]),
        version=version,
        digest=bytes(data[ADDRESS_LENGTH + 8 :]),
    )


def package_from_type(type_str: str) -> str:
    """Package address of a Move type label, e.g. ``0xabc::state::State`` -> ``0xabc``."""
    head = type_str.strip().split("::", 1)[0]
    return normalize_address(head)
