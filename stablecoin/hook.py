"""
Compliance Hook

Runs on every transfer of a hook-enabled mint and answers two questions
without going through the program: is the asset paused, and is either party
blacklisted?

The hook never decodes full records. It walks the registry bytes positionally
to the ``paused`` byte and treats a blacklist record as present when it holds
any data or any custodial balance.

Verdict order (first hit wins):

    1. registry paused          -> PAUSED
    2. source owner listed      -> SOURCE_BLACKLISTED
    3. destination owner listed -> DESTINATION_BLACKLISTED
    4. otherwise                -> ALLOWED

Registry bytes that end before the ``paused`` byte read as "not paused". That
keeps transfers flowing if the registry layout ever changes underneath a
deployed hook; the event is logged.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from stablecoin.addressing import (
    Identity,
    RecordKey,
    blacklist_key,
    derive_address,
    registry_key,
)
from stablecoin.codec import DISCRIMINATOR_LEN
from stablecoin.config import StablecoinConfig, get_config
from stablecoin.errors import InvalidInstruction, TransferBlacklisted, TransferPaused
from stablecoin.hardening import Validators
from stablecoin.observability import Layer, get_logger
from stablecoin.store import RecordStore

logger = get_logger("compliance", Layer.HOOK)

EXECUTE_DISCRIMINATOR = hashlib.sha256(b"spl-transfer-hook-interface:execute").digest()[:8]


def execute_instruction_data(amount: int) -> bytes:
    """Instruction bytes the ledger sends to the hook for one transfer."""
    return EXECUTE_DISCRIMINATOR + struct.pack("<Q", Validators.validate_u64(amount))


@dataclass(frozen=True)
class TransferContext:
    """The transfer being checked."""
    mint: Identity
    source_owner: Identity
    destination_owner: Identity
    authority: Identity
    amount: int = 0


class HookVerdict(Enum):
    ALLOWED = "allowed"
    PAUSED = "paused"
    SOURCE_BLACKLISTED = "source_blacklisted"
    DESTINATION_BLACKLISTED = "destination_blacklisted"

    @property
    def allowed(self) -> bool:
        return self is HookVerdict.ALLOWED


class RegistryLayoutReader:
    """
    Positional reader for the registry's ``paused`` byte.

    Layout v1:
        [8 disc][32 authority][32 ledger_handle]
        [4+n name][4+n symbol][4+n uri]
        [1 decimals][1 permanent_delegate][1 transfer_hook][1 default_frozen]
        [1 paused] ...
    """

    VERSION = 1
    FIXED_PREFIX = DISCRIMINATOR_LEN + 32 + 32
    STRING_FIELDS = 3
    BYTES_BEFORE_PAUSED = 4

    def read_paused(self, data: bytes) -> Optional[bool]:
        """Return the paused flag, or None if ``data`` ends before it."""
        offset = self.FIXED_PREFIX
        if len(data) < offset:
            return None

        for _ in range(self.STRING_FIELDS):
            if offset + 4 > len(data):
                return None
            (length,) = struct.unpack_from("<I", data, offset)
            offset += 4 + length

        offset += self.BYTES_BEFORE_PAUSED
        if offset >= len(data):
            return None
        return data[offset] != 0


class ComplianceHook:
    """Transfer interceptor over raw record access."""

    def __init__(
        self,
        store: RecordStore,
        program_id: Optional[Identity] = None,
        layout: Optional[RegistryLayoutReader] = None,
        config: Optional[StablecoinConfig] = None,
    ):
        self._store = store
        self._program_id = program_id
        self._layout = layout or RegistryLayoutReader()
        self._config = config

    @property
    def config(self) -> StablecoinConfig:
        return self._config or get_config()

    def registry_address(self, mint: Identity) -> Identity:
        return derive_address(registry_key(mint), self._program_id)

    def extra_account_keys(self, context: TransferContext) -> List[RecordKey]:
        """Records the hook reads for ``context``: registry, source, destination."""
        registry = self.registry_address(context.mint)
        return [
            registry_key(context.mint),
            blacklist_key(registry, context.source_owner),
            blacklist_key(registry, context.destination_owner),
        ]

    def is_paused(self, mint: Identity) -> bool:
        data = self._store.get_data(registry_key(mint)) or b""
        paused = self._layout.read_paused(data)
        if paused is None:
            if self.config.compliance.log_malformed_registry.get():
                logger.warning(
                    "Registry bytes end before paused flag; treating as not paused",
                    operation="read_paused",
                    mint=str(mint),
                    length=len(data),
                    layout_version=self._layout.VERSION,
                )
            return False
        return paused

    def is_listed(self, key: RecordKey) -> bool:
        record = self._store.get(key)
        if record is None:
            return False
        return len(record.data) > 0 or record.balance > 0

    def _bypasses_blacklist(self, context: TransferContext) -> bool:
        if not self.config.compliance.seize_bypasses_blacklist.get():
            return False
        return context.authority == self.registry_address(context.mint)

    def evaluate(self, context: TransferContext) -> HookVerdict:
        """Decide a transfer without raising."""
        _, source_k, destination_k = self.extra_account_keys(context)

        if self.is_paused(context.mint):
            return HookVerdict.PAUSED

        if self._bypasses_blacklist(context):
            return HookVerdict.ALLOWED

        if self.is_listed(source_k):
            return HookVerdict.SOURCE_BLACKLISTED
        if self.is_listed(destination_k):
            return HookVerdict.DESTINATION_BLACKLISTED
        return HookVerdict.ALLOWED

    def execute(self, instruction_data: bytes, context: TransferContext) -> HookVerdict:
        """Entry point called by the ledger. Raises to abort the transfer."""
        if len(instruction_data) < len(EXECUTE_DISCRIMINATOR):
            raise InvalidInstruction()
        if instruction_data[:len(EXECUTE_DISCRIMINATOR)] != EXECUTE_DISCRIMINATOR:
            raise InvalidInstruction()

        verdict = self.evaluate(context)
        if verdict is HookVerdict.ALLOWED:
            logger.debug("Transfer allowed", operation="execute", mint=str(context.mint))
            return verdict

        logger.info(
            "Transfer rejected",
            operation="execute",
            verdict=verdict.value,
            mint=str(context.mint),
            source=str(context.source_owner),
            destination=str(context.destination_owner),
        )
        if verdict is HookVerdict.PAUSED:
            raise TransferPaused()
        raise TransferBlacklisted()
