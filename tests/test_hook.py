"""
Compliance hook tests.

The hook sees only raw record bytes, so these tests build registry and
blacklist records directly in a RecordStore.

Run with: pytest tests/test_hook.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import hashlib
import logging
import struct

import pytest

from stablecoin.addressing import Identity, blacklist_key, registry_address, registry_key
from stablecoin.codec import encode_registry
from stablecoin.config import get_config_manager
from stablecoin.errors import InvalidInstruction, TransferBlacklisted, TransferPaused
from stablecoin.hook import (
    EXECUTE_DISCRIMINATOR,
    ComplianceHook,
    HookVerdict,
    RegistryLayoutReader,
    TransferContext,
    execute_instruction_data,
)
from stablecoin.state import Registry
from stablecoin.store import RecordStore


def ident(n: int) -> Identity:
    return Identity(bytes([n]) * 32)


MINT = ident(10)
SOURCE = ident(11)
DEST = ident(12)


def registry_bytes(name="Dollar", symbol="USD", uri="https://example.com", paused=False) -> bytes:
    return encode_registry(Registry(
        authority=ident(1),
        ledger_handle=MINT,
        name=name,
        symbol=symbol,
        uri=uri,
        decimals=6,
        permanent_delegate=True,
        transfer_hook=True,
        default_frozen=False,
        paused=paused,
    ))


def paused_offset(name="Dollar", symbol="USD", uri="https://example.com") -> int:
    return 72 + sum(4 + len(s.encode()) for s in (name, symbol, uri)) + 4


def context(authority: Identity = SOURCE) -> TransferContext:
    return TransferContext(mint=MINT, source_owner=SOURCE, destination_owner=DEST, authority=authority, amount=5)


@pytest.fixture
def store():
    s = RecordStore(record_deposit=1)
    s.put(registry_key(MINT), registry_bytes())
    return s


@pytest.fixture
def hook(store):
    return ComplianceHook(store)


class TestRegistryLayoutReader:
    """Tests for the positional paused-flag decoder."""

    def test_reads_paused_at_computed_offset(self):
        reader = RegistryLayoutReader()
        data = registry_bytes(paused=True)
        assert data[paused_offset()] == 1
        assert reader.read_paused(data) is True
        assert reader.read_paused(registry_bytes(paused=False)) is False

    def test_any_nonzero_byte_is_paused(self):
        data = bytearray(registry_bytes())
        data[paused_offset()] = 7
        assert RegistryLayoutReader().read_paused(bytes(data)) is True

    def test_variable_length_strings(self):
        data = registry_bytes(name="A" * 32, symbol="", uri="x" * 200, paused=True)
        assert RegistryLayoutReader().read_paused(data) is True

    @pytest.mark.parametrize("cut", [0, 8, 71, 72, 75, 82])
    def test_truncated_reads_none(self, cut):
        assert RegistryLayoutReader().read_paused(registry_bytes(paused=True)[:cut]) is None

    def test_truncated_just_before_paused_byte(self):
        data = registry_bytes(paused=True)
        assert RegistryLayoutReader().read_paused(data[:paused_offset()]) is None
        assert RegistryLayoutReader().read_paused(data[:paused_offset() + 1]) is True

    def test_oversized_length_prefix(self):
        data = bytearray(registry_bytes(paused=True))
        struct.pack_into("<I", data, 72, 0xFFFFFFFF)
        assert RegistryLayoutReader().read_paused(bytes(data)) is None

    def test_trailing_bytes_ignored(self):
        data = registry_bytes(paused=True) + b"\x00" * 64
        assert RegistryLayoutReader().read_paused(data) is True


class TestComplianceHook:
    """Tests for transfer verdicts."""

    def test_execute_discriminator(self):
        assert EXECUTE_DISCRIMINATOR == hashlib.sha256(b"spl-transfer-hook-interface:execute").digest()[:8]
        data = execute_instruction_data(5)
        assert data[:8] == EXECUTE_DISCRIMINATOR
        assert struct.unpack("<Q", data[8:])[0] == 5

    def test_allowed_when_unpaused_and_unlisted(self, hook):
        assert hook.evaluate(context()) is HookVerdict.ALLOWED
        assert hook.execute(execute_instruction_data(5), context()) is HookVerdict.ALLOWED

    def test_paused_rejects(self, store, hook):
        store.put(registry_key(MINT), registry_bytes(paused=True))
        assert hook.evaluate(context()) is HookVerdict.PAUSED
        with pytest.raises(TransferPaused):
            hook.execute(execute_instruction_data(5), context())

    def test_paused_byte_flip_scenario(self, store, hook):
        data = bytearray(registry_bytes())
        data[paused_offset()] = 1
        store.put(registry_key(MINT), bytes(data))
        with pytest.raises(TransferPaused):
            hook.execute(execute_instruction_data(1), context())

        data[paused_offset()] = 0
        store.put(registry_key(MINT), bytes(data))
        assert hook.execute(execute_instruction_data(1), context()) is HookVerdict.ALLOWED

    def test_wrong_discriminator(self, hook):
        with pytest.raises(InvalidInstruction):
            hook.execute(b"\x00" * 16, context())
        with pytest.raises(InvalidInstruction):
            hook.execute(EXECUTE_DISCRIMINATOR[:7], context())

    def test_discriminator_checked_before_state(self, store, hook):
        store.put(registry_key(MINT), registry_bytes(paused=True))
        with pytest.raises(InvalidInstruction):
            hook.execute(b"\x01" * 16, context())

    def test_source_blacklisted(self, store, hook):
        store.put(blacklist_key(registry_address(MINT), SOURCE), b"entry")
        assert hook.evaluate(context()) is HookVerdict.SOURCE_BLACKLISTED
        with pytest.raises(TransferBlacklisted):
            hook.execute(execute_instruction_data(5), context())

    def test_destination_blacklisted(self, store, hook):
        store.put(blacklist_key(registry_address(MINT), DEST), b"entry")
        assert hook.evaluate(context()) is HookVerdict.DESTINATION_BLACKLISTED

    def test_pause_wins_over_blacklist(self, store, hook):
        store.put(registry_key(MINT), registry_bytes(paused=True))
        store.put(blacklist_key(registry_address(MINT), SOURCE), b"entry")
        assert hook.evaluate(context()) is HookVerdict.PAUSED

    def test_presence_by_data_or_balance(self, store, hook):
        key = blacklist_key(registry_address(MINT), SOURCE)

        store.put(key, b"", balance=1)
        assert hook.is_listed(key)

        store.put(key, b"x", balance=0)
        assert hook.is_listed(key)

        store.put(key, b"", balance=0)
        assert not hook.is_listed(key)

    def test_malformed_registry_fails_open(self, store, hook, caplog):
        store.put(registry_key(MINT), registry_bytes(paused=True)[:40])
        with caplog.at_level(logging.WARNING, logger="stablecoin.hook.compliance"):
            assert hook.evaluate(context()) is HookVerdict.ALLOWED
        assert any("paused flag" in r.getMessage() for r in caplog.records)

    def test_missing_registry_fails_open(self):
        assert ComplianceHook(RecordStore(record_deposit=1)).evaluate(context()) is HookVerdict.ALLOWED

    def test_extra_account_keys(self, hook):
        keys = hook.extra_account_keys(context())
        reg = registry_address(MINT)
        assert keys == [registry_key(MINT), blacklist_key(reg, SOURCE), blacklist_key(reg, DEST)]


class TestSeizeBypass:
    """Tests for the configurable permanent-delegate blacklist bypass."""

    def test_default_blocks_delegate_transfer_from_listed_source(self, store, hook):
        store.put(blacklist_key(registry_address(MINT), SOURCE), b"entry")
        assert hook.evaluate(context(authority=registry_address(MINT))) is HookVerdict.SOURCE_BLACKLISTED

    def test_bypass_allows_delegate_only(self, store, hook):
        get_config_manager().set("compliance.seize_bypasses_blacklist", True)
        store.put(blacklist_key(registry_address(MINT), SOURCE), b"entry")

        assert hook.evaluate(context(authority=registry_address(MINT))) is HookVerdict.ALLOWED
        assert hook.evaluate(context(authority=SOURCE)) is HookVerdict.SOURCE_BLACKLISTED

    def test_bypass_never_skips_pause(self, store, hook):
        get_config_manager().set("compliance.seize_bypasses_blacklist", True)
        store.put(registry_key(MINT), registry_bytes(paused=True))
        assert hook.evaluate(context(authority=registry_address(MINT))) is HookVerdict.PAUSED

    def test_bypass_from_environment(self, store, hook, monkeypatch):
        monkeypatch.setenv("STABLECOIN_SEIZE_BYPASSES_BLACKLIST", "true")
        store.put(blacklist_key(registry_address(MINT), DEST), b"entry")
        assert hook.evaluate(context(authority=registry_address(MINT))) is HookVerdict.ALLOWED
