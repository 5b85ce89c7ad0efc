"""
Stablecoin Record Store

Keyed storage for serialized records, plus thin typed views over it.

    RecordStore        raw bytes under RecordKey; get / put / exists / delete
      └─ Transaction   per-key exclusive locks, staged writes, all-or-nothing commit
    RegistryStore  RoleStore  QuotaStore  BlacklistStore  SupplyCapStore
                       typed encode/decode over either of the above

Records are stored in their wire form so that the compliance hook, which only
understands bytes, reads exactly what the program wrote.

Concurrency model:
    - A transaction declares its key set up front and locks those keys in
      sorted order; two transactions sharing a key serialize, disjoint ones
      run in parallel.
    - Writes are staged in an overlay and applied in one step when the body
      returns. Any exception discards the overlay, so a rejected operation
      leaves no trace.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, TypeVar

from stablecoin import codec
from stablecoin.addressing import (
    Identity,
    RecordKey,
    blacklist_key,
    minter_key,
    registry_key,
    role_key,
    supply_cap_key,
)
from stablecoin.errors import AlreadyBlacklisted, NotBlacklisted
from stablecoin.hardening import AtomicCounter, InvariantViolation, ThreadSafeDict
from stablecoin.observability import Layer, get_logger
from stablecoin.state import BlacklistEntry, MinterQuota, Registry, RoleFlags, RoleRecord, SupplyCap

logger = get_logger("records", Layer.STORE)


@dataclass(frozen=True)
class StoredRecord:
    """Raw record bytes plus the custodial balance held by the record."""
    data: bytes
    balance: int


class RecordStore:
    """
    Thread-safe record storage keyed by composite RecordKey.

    Uniqueness per key is enforced here; callers never compute storage
    locations themselves.
    """

    def __init__(self, record_deposit: Optional[int] = None):
        if record_deposit is None:
            from stablecoin.config import get_config
            record_deposit = get_config().storage.record_deposit.get()
        self._record_deposit = record_deposit
        self._records: ThreadSafeDict[StoredRecord] = ThreadSafeDict()
        self._key_locks: Dict[RecordKey, threading.RLock] = {}
        self._key_locks_guard = threading.Lock()
        self._commits = AtomicCounter(0)

    # -- direct access ------------------------------------------------------

    def get(self, key: RecordKey) -> Optional[StoredRecord]:
        return self._records.get(key)

    def get_data(self, key: RecordKey) -> Optional[bytes]:
        rec = self._records.get(key)
        return rec.data if rec is not None else None

    def exists(self, key: RecordKey) -> bool:
        return key in self._records

    def put(self, key: RecordKey, data: bytes, balance: Optional[int] = None) -> StoredRecord:
        """Write a record outside any transaction."""
        with self._lock_keys([key]):
            rec = StoredRecord(data=bytes(data), balance=self._record_deposit if balance is None else balance)
            self._records[key] = rec
            return rec

    def delete(self, key: RecordKey) -> bool:
        """Delete a record. Returns True if it existed."""
        with self._lock_keys([key]):
            return self._records.pop(key, None) is not None

    def keys(self, tag: Optional[str] = None) -> List[RecordKey]:
        return [k for k in self._records if tag is None or k.tag == tag]

    @property
    def commit_count(self) -> int:
        return self._commits.get()

    # -- transactions -------------------------------------------------------

    def _lock_for(self, key: RecordKey) -> threading.RLock:
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._key_locks[key] = lock
            return lock

    @contextmanager
    def _lock_keys(self, keys: Iterable[RecordKey]) -> Iterator[None]:
        # sorted acquisition order rules out lock-order deadlocks
        locks = [self._lock_for(k) for k in sorted(set(keys))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    @contextmanager
    def transaction(self, keys: Iterable[RecordKey]) -> Iterator["Transaction"]:
        """Run a body against ``keys`` atomically.

        The body sees its own staged writes. Nothing reaches the store unless
        the body completes without raising.
        """
        declared = frozenset(keys)
        with self._lock_keys(declared):
            tx = Transaction(self, declared)
            yield tx
            tx._commit()

    def _apply(self, overlay: Dict[RecordKey, Optional[bytes]]) -> None:
        with self._records.transaction():
            for key, data in overlay.items():
                if data is None:
                    self._records.pop(key, None)
                else:
                    existing = self._records.get(key)
                    balance = existing.balance if existing is not None else self._record_deposit
                    self._records[key] = StoredRecord(data=data, balance=balance)
        self._commits.increment()
        logger.debug("Committed records", operation="commit", writes=len(overlay))


class Transaction:
    """Staged view over a fixed, declared key set."""

    def __init__(self, store: RecordStore, declared: frozenset):
        self._store = store
        self._declared = declared
        self._overlay: Dict[RecordKey, Optional[bytes]] = {}
        self._closed = False

    def _check(self, key: RecordKey) -> None:
        if self._closed:
            raise InvariantViolation("transaction already committed")
        if key not in self._declared:
            raise InvariantViolation(f"record {key} was not declared by this operation")

    def get_data(self, key: RecordKey) -> Optional[bytes]:
        self._check(key)
        if key in self._overlay:
            return self._overlay[key]
        return self._store.get_data(key)

    def exists(self, key: RecordKey) -> bool:
        return self.get_data(key) is not None

    def put(self, key: RecordKey, data: bytes) -> None:
        self._check(key)
        self._overlay[key] = bytes(data)

    def delete(self, key: RecordKey) -> bool:
        existed = self.exists(key)
        self._overlay[key] = None
        return existed

    @property
    def pending_writes(self) -> int:
        return len(self._overlay)

    def _commit(self) -> None:
        self._closed = True
        if self._overlay:
            self._store._apply(self._overlay)


# =============================================================================
# TYPED VIEWS
# =============================================================================

R = TypeVar("R")


class _TypedStore(Generic[R]):
    """Encode/decode one record kind over a RecordStore or Transaction."""

    encode: Callable[[R], bytes]
    decode: Callable[[bytes], R]

    def __init__(self, access):
        self._access = access

    def _load(self, key: RecordKey) -> Optional[R]:
        data = self._access.get_data(key)
        if data is None:
            return None
        return type(self).decode(data)

    def _save(self, key: RecordKey, record: R) -> R:
        self._access.put(key, type(self).encode(record))
        return record


class RegistryStore(_TypedStore[Registry]):
    encode = staticmethod(codec.encode_registry)
    decode = staticmethod(codec.decode_registry)

    def get(self, ledger_handle: Identity) -> Optional[Registry]:
        return self._load(registry_key(ledger_handle))

    def exists(self, ledger_handle: Identity) -> bool:
        return self._access.exists(registry_key(ledger_handle))

    def put(self, registry: Registry) -> Registry:
        return self._save(registry_key(registry.ledger_handle), registry)


class RoleStore(_TypedStore[RoleRecord]):
    """Per-(registry, holder) capability record."""
    encode = staticmethod(codec.encode_role)
    decode = staticmethod(codec.decode_role)

    def get(self, registry: Identity, holder: Identity) -> Optional[RoleRecord]:
        return self._load(role_key(registry, holder))

    def roles_of(self, registry: Identity, holder: Identity) -> RoleFlags:
        """Capabilities of ``holder``; a missing record means none."""
        record = self.get(registry, holder)
        return record.roles if record is not None else RoleFlags.none()

    def put(self, record: RoleRecord) -> RoleRecord:
        # overwrite, never merge
        return self._save(role_key(record.registry, record.holder), record)


class QuotaStore(_TypedStore[MinterQuota]):
    encode = staticmethod(codec.encode_minter_quota)
    decode = staticmethod(codec.decode_minter_quota)

    def get(self, registry: Identity, minter: Identity) -> Optional[MinterQuota]:
        return self._load(minter_key(registry, minter))

    def get_or_empty(self, registry: Identity, minter: Identity) -> MinterQuota:
        """Quota record, or a zero quota with nothing minted."""
        record = self.get(registry, minter)
        if record is None:
            return MinterQuota(registry=registry, minter=minter, quota=0, minted_amount=0)
        return record

    def put(self, record: MinterQuota) -> MinterQuota:
        return self._save(minter_key(record.registry, record.minter), record)


class SupplyCapStore(_TypedStore[SupplyCap]):
    encode = staticmethod(codec.encode_supply_cap)
    decode = staticmethod(codec.decode_supply_cap)

    def get(self, registry: Identity) -> Optional[SupplyCap]:
        """The cap record, or None when absent or unreadable.

        An unreadable record under the cap key is treated as "no cap" rather
        than failing the mint.
        """
        key = supply_cap_key(registry)
        data = self._access.get_data(key)
        if data is None:
            return None
        try:
            return codec.decode_supply_cap(data)
        except codec.CodecError as e:
            logger.warning(
                "Supply cap record unreadable; treating as uncapped",
                operation="supply_cap_read",
                record=str(key),
                reason=str(e),
            )
            return None

    def put(self, registry: Identity, cap: SupplyCap) -> SupplyCap:
        return self._save(supply_cap_key(registry), cap)


class BlacklistStore(_TypedStore[BlacklistEntry]):
    """Existence of a record is the blacklist signal."""
    encode = staticmethod(codec.encode_blacklist_entry)
    decode = staticmethod(codec.decode_blacklist_entry)

    def is_blacklisted(self, registry: Identity, address: Identity) -> bool:
        return self._access.exists(blacklist_key(registry, address))

    def get(self, registry: Identity, address: Identity) -> Optional[BlacklistEntry]:
        return self._load(blacklist_key(registry, address))

    def create(self, entry: BlacklistEntry) -> BlacklistEntry:
        """Insert a new entry; an existing one is never overwritten."""
        if self.is_blacklisted(entry.registry, entry.address):
            raise AlreadyBlacklisted()
        return self._save(blacklist_key(entry.registry, entry.address), entry)

    def remove(self, registry: Identity, address: Identity) -> None:
        if not self._access.delete(blacklist_key(registry, address)):
            raise NotBlacklisted()
