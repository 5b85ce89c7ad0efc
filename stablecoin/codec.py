"""
Wire codec for stored records.

Records are serialized Borsh-style: little-endian fixed-width integers, one
byte per bool, strings as ``u32 LE length || UTF-8 bytes``, identities as raw
32 bytes. Every record starts with an 8-byte discriminator,
``sha256("account:<RecordName>")[:8]``, so a reader can tell record kinds
apart without any outside context.

Registry layout (the compliance hook depends on this exact order):

    [8 disc][32 authority][32 ledger_handle]
    [4+n name][4+n symbol][4+n uri]
    [1 decimals][1 permanent_delegate][1 transfer_hook][1 default_frozen]
    [1 paused][8 total_minted][8 total_burned][1 bump]

Decoding is strict (discriminator, bool bytes, lengths); trailing bytes after
the last field are ignored, since stored records may be allocated larger than
their content.
"""

from __future__ import annotations

import hashlib
import struct
from typing import Any

from stablecoin.addressing import IDENTITY_LEN, Identity
from stablecoin.hardening import U8_MAX, U32_MAX, U64_MAX, ValidationResult, Validators
from stablecoin.state import BlacklistEntry, MinterQuota, Registry, RoleFlags, RoleRecord, SupplyCap

DISCRIMINATOR_LEN = 8


class CodecError(ValueError):
    """Bytes do not decode as the requested record."""
    pass


def account_discriminator(record_name: str) -> bytes:
    return hashlib.sha256(f"account:{record_name}".encode("ascii")).digest()[:DISCRIMINATOR_LEN]


REGISTRY_DISCRIMINATOR = account_discriminator("Registry")
ROLE_DISCRIMINATOR = account_discriminator("RoleRecord")
MINTER_QUOTA_DISCRIMINATOR = account_discriminator("MinterQuota")
SUPPLY_CAP_DISCRIMINATOR = account_discriminator("SupplyCap")
BLACKLIST_DISCRIMINATOR = account_discriminator("BlacklistEntry")


def _in_range(result: ValidationResult) -> Any:
    if not result.is_valid:
        raise CodecError("; ".join(str(e) for e in result.errors))
    return result.sanitized_value


class RecordWriter:
    """Append-only Borsh-style encoder."""

    def __init__(self, discriminator: bytes):
        self._buf = bytearray(discriminator)

    def u8(self, value: int) -> "RecordWriter":
        self._buf += struct.pack("<B", _in_range(Validators.validate_uint(value, "u8", U8_MAX)))
        return self

    def boolean(self, value: bool) -> "RecordWriter":
        self._buf.append(1 if value else 0)
        return self

    def u64(self, value: int) -> "RecordWriter":
        self._buf += struct.pack("<Q", _in_range(Validators.validate_uint(value, "u64", U64_MAX)))
        return self

    def i64(self, value: int) -> "RecordWriter":
        self._buf += struct.pack("<q", _in_range(Validators.validate_i64(value, "i64")))
        return self

    def identity(self, value: Identity) -> "RecordWriter":
        self._buf += value.key
        return self

    def string(self, value: str) -> "RecordWriter":
        encoded = value.encode("utf-8")
        if len(encoded) > U32_MAX:
            raise CodecError("string too long for u32 length prefix")
        self._buf += struct.pack("<I", len(encoded))
        self._buf += encoded
        return self

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class RecordReader:
    """Cursor over record bytes. Every read is bounds-checked."""

    def __init__(self, data: bytes, discriminator: bytes):
        if len(data) < DISCRIMINATOR_LEN:
            raise CodecError("record shorter than discriminator")
        if data[:DISCRIMINATOR_LEN] != discriminator:
            raise CodecError("discriminator mismatch")
        self._data = data
        self._offset = DISCRIMINATOR_LEN

    @property
    def offset(self) -> int:
        return self._offset

    def _take(self, n: int) -> bytes:
        end = self._offset + n
        if end > len(self._data):
            raise CodecError(f"truncated record: need {n} bytes at offset {self._offset}")
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def boolean(self) -> bool:
        b = self._take(1)[0]
        if b > 1:
            raise CodecError(f"invalid bool byte {b} at offset {self._offset - 1}")
        return b == 1

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def identity(self) -> Identity:
        return Identity(self._take(IDENTITY_LEN))

    def string(self) -> str:
        (length,) = struct.unpack("<I", self._take(4))
        raw = self._take(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"string is not valid UTF-8: {e}") from e


# =============================================================================
# RECORD ENCODERS / DECODERS
# =============================================================================

def encode_registry(r: Registry) -> bytes:
    return (
        RecordWriter(REGISTRY_DISCRIMINATOR)
        .identity(r.authority)
        .identity(r.ledger_handle)
        .string(r.name)
        .string(r.symbol)
        .string(r.uri)
        .u8(r.decimals)
        .boolean(r.permanent_delegate)
        .boolean(r.transfer_hook)
        .boolean(r.default_frozen)
        .boolean(r.paused)
        .u64(r.total_minted)
        .u64(r.total_burned)
        .u8(r.bump)
        .getvalue()
    )


def decode_registry(data: bytes) -> Registry:
    rd = RecordReader(data, REGISTRY_DISCRIMINATOR)
    return Registry(
        authority=rd.identity(),
        ledger_handle=rd.identity(),
        name=rd.string(),
        symbol=rd.string(),
        uri=rd.string(),
        decimals=rd.u8(),
        permanent_delegate=rd.boolean(),
        transfer_hook=rd.boolean(),
        default_frozen=rd.boolean(),
        paused=rd.boolean(),
        total_minted=rd.u64(),
        total_burned=rd.u64(),
        bump=rd.u8(),
    )


def encode_role(r: RoleRecord) -> bytes:
    w = RecordWriter(ROLE_DISCRIMINATOR).identity(r.registry).identity(r.holder)
    for flag in r.roles.as_dict().values():
        w.boolean(flag)
    return w.u8(r.bump).getvalue()


def decode_role(data: bytes) -> RoleRecord:
    rd = RecordReader(data, ROLE_DISCRIMINATOR)
    registry = rd.identity()
    holder = rd.identity()
    roles = RoleFlags(
        minter=rd.boolean(),
        burner=rd.boolean(),
        pauser=rd.boolean(),
        freezer=rd.boolean(),
        blacklister=rd.boolean(),
        seizer=rd.boolean(),
    )
    return RoleRecord(registry=registry, holder=holder, roles=roles, bump=rd.u8())


def encode_minter_quota(q: MinterQuota) -> bytes:
    return (
        RecordWriter(MINTER_QUOTA_DISCRIMINATOR)
        .identity(q.registry)
        .identity(q.minter)
        .u64(q.quota)
        .u64(q.minted_amount)
        .u8(q.bump)
        .getvalue()
    )


def decode_minter_quota(data: bytes) -> MinterQuota:
    rd = RecordReader(data, MINTER_QUOTA_DISCRIMINATOR)
    return MinterQuota(
        registry=rd.identity(),
        minter=rd.identity(),
        quota=rd.u64(),
        minted_amount=rd.u64(),
        bump=rd.u8(),
    )


def encode_supply_cap(c: SupplyCap) -> bytes:
    return RecordWriter(SUPPLY_CAP_DISCRIMINATOR).u64(c.cap).u8(c.bump).getvalue()


def decode_supply_cap(data: bytes) -> SupplyCap:
    rd = RecordReader(data, SUPPLY_CAP_DISCRIMINATOR)
    return SupplyCap(cap=rd.u64(), bump=rd.u8())


def encode_blacklist_entry(e: BlacklistEntry) -> bytes:
    return (
        RecordWriter(BLACKLIST_DISCRIMINATOR)
        .identity(e.registry)
        .identity(e.address)
        .string(e.reason)
        .i64(e.blacklisted_at)
        .identity(e.blacklisted_by)
        .u8(e.bump)
        .getvalue()
    )


def decode_blacklist_entry(data: bytes) -> BlacklistEntry:
    rd = RecordReader(data, BLACKLIST_DISCRIMINATOR)
    return BlacklistEntry(
        registry=rd.identity(),
        address=rd.identity(),
        reason=rd.string(),
        blacklisted_at=rd.i64(),
        blacklisted_by=rd.identity(),
        bump=rd.u8(),
    )

