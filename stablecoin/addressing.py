"""
Identities and deterministic record addressing.

Every record lives under a composite key ``(tag, *identities)``. The key is the
unit of uniqueness in the store; ``derive_address`` maps a key to a 32-byte
address so that a record (the registry in particular) can itself be named
inside other keys.

    registry    ("registry",   ledger_handle)
    role        ("role",       registry, holder)
    minter      ("minter",     registry, minter)
    blacklist   ("blacklist",  registry, address)
    supply_cap  ("supply_cap", registry)

Identities print as base58, matching how account keys are shown to operators.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

IDENTITY_LEN = 32

REGISTRY_TAG = "registry"
ROLE_TAG = "role"
MINTER_TAG = "minter"
BLACKLIST_TAG = "blacklist"
SUPPLY_CAP_TAG = "supply_cap"

# tag -> number of identity parts the key carries
TAG_ARITY = {
    REGISTRY_TAG: 1,
    ROLE_TAG: 2,
    MINTER_TAG: 2,
    BLACKLIST_TAG: 2,
    SUPPLY_CAP_TAG: 1,
}

CANONICAL_BUMP = 255

_DERIVATION_MARKER = b"ProgramDerivedAddress"


# Base58 (bitcoin alphabet)
B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}


def b58decode(s: str) -> bytes:
    s_bytes = s.encode("ascii")
    num = 0
    for c in s_bytes:
        if c not in B58_MAP:
            raise ValueError("Invalid base58 character")
        num = num * 58 + B58_MAP[c]
    n_pad = 0
    for c in s_bytes:
        if c == B58_ALPHABET[0]:
            n_pad += 1
        else:
            break
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def b58encode(b: bytes) -> str:
    n_pad = 0
    for c in b:
        if c == 0:
            n_pad += 1
        else:
            break
    num = int.from_bytes(b, "big")
    out = bytearray()
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(B58_ALPHABET[rem])
    out.extend(B58_ALPHABET[0] for _ in range(n_pad))
    out.reverse()
    return out.decode("ascii")


@dataclass(frozen=True, order=True)
class Identity:
    """A 32-byte account identity."""
    key: bytes

    def __post_init__(self):
        if not isinstance(self.key, bytes) or len(self.key) != IDENTITY_LEN:
            raise ValueError(f"Identity must be {IDENTITY_LEN} bytes")

    @classmethod
    def from_base58(cls, text: str) -> "Identity":
        return cls(b58decode(text))

    @property
    def is_null(self) -> bool:
        return self.key == bytes(IDENTITY_LEN)

    def __str__(self) -> str:
        return b58encode(self.key)

    def __repr__(self) -> str:
        return f"Identity({b58encode(self.key)})"

    def __bytes__(self) -> bytes:
        return self.key


NULL_IDENTITY = Identity(bytes(IDENTITY_LEN))

PROGRAM_ID = Identity(hashlib.sha256(b"stablecoin-core/program").digest())


class Keypair:
    """Ed25519 keypair whose public half is an ``Identity``."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        raw = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.identity = Identity(raw)

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic keypair from a 32-byte seed."""
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def __repr__(self) -> str:
        return f"Keypair({self.identity})"


IdentityLike = Union[Identity, Keypair]


def as_identity(value: IdentityLike) -> Identity:
    if isinstance(value, Keypair):
        return value.identity
    if isinstance(value, Identity):
        return value
    raise TypeError(f"Expected Identity or Keypair, got {type(value).__name__}")


@dataclass(frozen=True, order=True)
class RecordKey:
    """Composite store key: a literal tag followed by fixed-width identities."""
    tag: str
    parts: Tuple[Identity, ...]

    def __post_init__(self):
        arity = TAG_ARITY.get(self.tag)
        if arity is None:
            raise ValueError(f"Unknown record tag: {self.tag!r}")
        if len(self.parts) != arity:
            raise ValueError(f"Tag {self.tag!r} takes {arity} parts, got {len(self.parts)}")

    def seeds(self) -> Tuple[bytes, ...]:
        return (self.tag.encode("ascii"),) + tuple(p.key for p in self.parts)

    def __str__(self) -> str:
        return "/".join([self.tag] + [str(p) for p in self.parts])


def derive_address(key: RecordKey, program_id: Optional[Identity] = None) -> Identity:
    """Deterministic 32-byte address for a record key."""
    program_id = program_id or PROGRAM_ID
    h = hashlib.sha256()
    for seed in key.seeds():
        h.update(len(seed).to_bytes(1, "little"))
        h.update(seed)
    h.update(program_id.key)
    h.update(_DERIVATION_MARKER)
    return Identity(h.digest())


def registry_key(ledger_handle: Identity) -> RecordKey:
    return RecordKey(REGISTRY_TAG, (ledger_handle,))


def role_key(registry: Identity, holder: Identity) -> RecordKey:
    return RecordKey(ROLE_TAG, (registry, holder))


def minter_key(registry: Identity, minter: Identity) -> RecordKey:
    return RecordKey(MINTER_TAG, (registry, minter))


def blacklist_key(registry: Identity, address: Identity) -> RecordKey:
    return RecordKey(BLACKLIST_TAG, (registry, address))


def supply_cap_key(registry: Identity) -> RecordKey:
    return RecordKey(SUPPLY_CAP_TAG, (registry,))


def registry_address(ledger_handle: Identity, program_id: Optional[Identity] = None) -> Identity:
    """Address of the registry governing ``ledger_handle``."""
    return derive_address(registry_key(ledger_handle), program_id)
