"""
token_ledger.address: account identifiers and hashing helpers.

Accounts are 20-byte identifiers written as lowercase ``0x``-prefixed hex
strings. They are opaque: the ledger only compares them for equality. The
all-zero account is the *null account*; it is never a valid receiver and is
the ``from``/``to`` of mint/burn events.

Keccak-256 comes from PyCryptodome (``Crypto.Hash.keccak``), the same
primitive Ethereum tooling uses, so role ids match ``keccak256("MINTER_ROLE")``.
"""

from __future__ import annotations

import hashlib
import re
from typing import Union

from Crypto.Hash import keccak as _keccak

__all__ = [
    "Address",
    "ADDRESS_BYTES",
    "ZERO_ADDRESS",
    "keccak256",
    "normalize_address",
    "is_address",
    "is_zero",
    "derive_address",
    "contract_address",
]

Address = str

ADDRESS_BYTES = 20
ZERO_ADDRESS: Address = "0x" + "00" * ADDRESS_BYTES

_ADDR_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def keccak256(data: Union[bytes, bytearray, memoryview, str]) -> bytes:
    """Keccak-256 (pre-SHA3 padding). Text is UTF-8 encoded first."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = _keccak.new(digest_bits=256)
    h.update(bytes(data))
    return h.digest()


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDR_RE.match(value))


def normalize_address(value: Union[str, bytes, bytearray]) -> Address:
    """
    Canonicalize an address to lowercase ``0x`` hex.

    Accepts 20 raw bytes or a 40-digit hex string with or without ``0x``.
    Raises ValueError otherwise.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_BYTES:
            raise ValueError(f"address must be {ADDRESS_BYTES} bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError(f"address must be str or bytes, got {type(value).__name__}")
    s = value.strip()
    if not s.startswith(("0x", "0X")):
        s = "0x" + s
    if not _ADDR_RE.match(s):
        raise ValueError(f"malformed address: {value!r}")
    return "0x" + s[2:].lower()


def is_zero(addr: Address) -> bool:
    return normalize_address(addr) == ZERO_ADDRESS


def derive_address(tag: str) -> Address:
    """
    Produce a stable address from a tag. Used for deterministic local accounts.
    """
    h = hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:40]
    return "0x" + h


def contract_address(deployer: Address, nonce: int) -> Address:
    """
    Address of the ``nonce``-th contract created by ``deployer``:
    the low 20 bytes of keccak256(deployer || nonce_be8).
    """
    raw = bytes.fromhex(normalize_address(deployer)[2:]) + int(nonce).to_bytes(8, "big")
    return "0x" + keccak256(raw)[-ADDRESS_BYTES:].hex()
