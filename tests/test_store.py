"""
Record store tests: atomic transactions, declared key sets, typed views.

Run with: pytest tests/test_store.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import threading

import pytest

from stablecoin.addressing import Identity, blacklist_key, registry_key, role_key, supply_cap_key
from stablecoin.codec import encode_registry
from stablecoin.config import get_config_manager
from stablecoin.errors import AlreadyBlacklisted, NotBlacklisted
from stablecoin.hardening import InvariantViolation
from stablecoin.state import BlacklistEntry, Registry, RoleFlags, RoleRecord, SupplyCap, UNCAPPED
from stablecoin.store import (
    BlacklistStore,
    QuotaStore,
    RecordStore,
    RegistryStore,
    RoleStore,
    SupplyCapStore,
)


def ident(n: int) -> Identity:
    return Identity(bytes([n]) * 32)


class TestRecordStore:
    """Tests for raw record storage."""

    def test_put_get_exists_delete(self):
        store = RecordStore(record_deposit=7)
        key = registry_key(ident(1))

        assert store.get(key) is None
        assert not store.exists(key)

        store.put(key, b"abc")
        assert store.exists(key)
        assert store.get_data(key) == b"abc"
        assert store.get(key).balance == 7

        assert store.delete(key) is True
        assert store.delete(key) is False
        assert not store.exists(key)

    def test_record_deposit_from_config(self):
        get_config_manager().set("storage.record_deposit", 42)
        store = RecordStore()
        store.put(registry_key(ident(1)), b"x")
        assert store.get(registry_key(ident(1))).balance == 42

    def test_keys_by_tag(self):
        store = RecordStore(record_deposit=1)
        store.put(registry_key(ident(1)), b"r")
        store.put(role_key(ident(1), ident(2)), b"o")
        assert store.keys("role") == [role_key(ident(1), ident(2))]
        assert len(store.keys()) == 2


class TestTransactions:
    """Tests for all-or-nothing commit."""

    def test_commit_on_success(self):
        store = RecordStore(record_deposit=1)
        a, b = registry_key(ident(1)), registry_key(ident(2))

        with store.transaction([a, b]) as tx:
            tx.put(a, b"A")
            tx.put(b, b"B")
            assert tx.pending_writes == 2
            assert tx.get_data(a) == b"A"
            # nothing visible outside until commit
            assert not store.exists(a)

        assert store.get_data(a) == b"A"
        assert store.get_data(b) == b"B"
        assert store.commit_count == 1

    def test_rollback_on_error(self):
        store = RecordStore(record_deposit=1)
        a = registry_key(ident(1))
        store.put(a, b"before")

        with pytest.raises(RuntimeError):
            with store.transaction([a]) as tx:
                tx.put(a, b"after")
                tx.delete(a)
                raise RuntimeError("boom")

        assert store.get_data(a) == b"before"
        assert store.commit_count == 0

    def test_delete_in_transaction(self):
        store = RecordStore(record_deposit=1)
        a = blacklist_key(ident(1), ident(2))
        store.put(a, b"x")

        with store.transaction([a]) as tx:
            assert tx.delete(a) is True
            assert not tx.exists(a)

        assert not store.exists(a)

    def test_undeclared_key_rejected(self):
        store = RecordStore(record_deposit=1)
        with pytest.raises(InvariantViolation):
            with store.transaction([registry_key(ident(1))]) as tx:
                tx.put(registry_key(ident(2)), b"x")

    def test_existing_balance_preserved_on_update(self):
        store = RecordStore(record_deposit=1)
        key = registry_key(ident(1))
        store.put(key, b"old", balance=99)

        with store.transaction([key]) as tx:
            tx.put(key, b"new")

        assert store.get(key).balance == 99

    def test_overlapping_transactions_serialize(self):
        store = RecordStore(record_deposit=1)
        key = registry_key(ident(1))
        store.put(key, (0).to_bytes(8, "little"))

        def bump():
            for _ in range(200):
                with store.transaction([key, registry_key(ident(2))]) as tx:
                    n = int.from_bytes(tx.get_data(key), "little")
                    tx.put(key, (n + 1).to_bytes(8, "little"))

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert int.from_bytes(store.get_data(key), "little") == 800


class TestTypedStores:
    """Tests for typed views over raw records."""

    def test_registry_store(self):
        store = RecordStore(record_deposit=1)
        reg = Registry(
            authority=ident(1), ledger_handle=ident(2), name="n", symbol="s", uri="u",
            decimals=0, permanent_delegate=False, transfer_hook=False, default_frozen=False,
        )
        RegistryStore(store).put(reg)
        assert RegistryStore(store).get(ident(2)) == reg
        assert store.get_data(registry_key(ident(2))) == encode_registry(reg)

    def test_missing_role_means_no_capabilities(self):
        store = RecordStore(record_deposit=1)
        assert RoleStore(store).roles_of(ident(1), ident(2)) == RoleFlags.none()

    def test_role_overwrite_not_merge(self):
        store = RecordStore(record_deposit=1)
        roles = RoleStore(store)
        roles.put(RoleRecord(registry=ident(1), holder=ident(2), roles=RoleFlags.all()))
        roles.put(RoleRecord(registry=ident(1), holder=ident(2), roles=RoleFlags(burner=True)))
        assert roles.roles_of(ident(1), ident(2)) == RoleFlags(burner=True)

    def test_quota_get_or_empty(self):
        store = RecordStore(record_deposit=1)
        quota = QuotaStore(store).get_or_empty(ident(1), ident(2))
        assert quota.quota == 0
        assert quota.minted_amount == 0

    def test_supply_cap_unreadable_is_uncapped(self):
        store = RecordStore(record_deposit=1)
        store.put(supply_cap_key(ident(1)), b"garbage")
        assert SupplyCapStore(store).get(ident(1)) is None

    def test_supply_cap_roundtrip(self):
        store = RecordStore(record_deposit=1)
        SupplyCapStore(store).put(ident(1), SupplyCap(cap=500))
        assert SupplyCapStore(store).get(ident(1)).cap == 500
        SupplyCapStore(store).put(ident(1), SupplyCap(cap=UNCAPPED))
        assert not SupplyCapStore(store).get(ident(1)).is_capped

    def test_blacklist_create_and_remove(self):
        store = RecordStore(record_deposit=1)
        blacklist = BlacklistStore(store)
        entry = BlacklistEntry(
            registry=ident(1), address=ident(2), reason="r", blacklisted_at=0, blacklisted_by=ident(3),
        )

        blacklist.create(entry)
        assert blacklist.is_blacklisted(ident(1), ident(2))
        assert blacklist.get(ident(1), ident(2)) == entry

        with pytest.raises(AlreadyBlacklisted):
            blacklist.create(entry)

        blacklist.remove(ident(1), ident(2))
        assert not blacklist.is_blacklisted(ident(1), ident(2))

        with pytest.raises(NotBlacklisted):
            blacklist.remove(ident(1), ident(2))
