"""
Stablecoin Core: authorization and compliance for a role-gated token ledger

Every privileged operation on a governed asset (mint, burn, freeze, thaw,
pause, blacklist, seize, role and authority changes) passes through one state
machine that checks the caller's capabilities and the issuance invariants. A
separate compliance hook enforces pause and blacklist on every transfer by
reading the same stored bytes.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          STABLECOIN CORE                                 │
    │                                                                          │
    │  PROGRAM                                                                 │
    │    program.py        State machine over every privileged operation      │
    │    authorization.py  Role and authority rules per operation             │
    │    quota.py          u64 quota and supply-cap arithmetic                │
    │                                                                          │
    │  COMPLIANCE                                                              │
    │    hook.py           Transfer interceptor: pause byte, blacklist check  │
    │    ledger.py         Ledger interface and in-memory ledger              │
    │                                                                          │
    │  RECORDS                                                                 │
    │    store.py          Keyed record store, atomic transactions            │
    │    codec.py          Wire layout of every record                        │
    │    state.py          Record types                                       │
    │    addressing.py     Identities and record keys                         │
    │                                                                          │
    │  AMBIENT                                                                 │
    │    config.py  observability.py  hardening.py  errors.py                 │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Registry: The root record for one ledger mint. Holds the authority,
    metadata, feature flags fixed at creation, the paused flag and the
    lifetime minted/burned counters.

    Role: Six independent capabilities (minter, burner, pauser, freezer,
    blacklister, seizer). No role implies another. Only the authority grants
    them.

    Compliance mode: A registry created with both a permanent delegate and a
    transfer hook. Blacklisting and seizure exist only in this mode.

Design Principles
─────────────────

    Atomic Operations: An operation commits all of its record writes or none.

    Checked Arithmetic: Issuance counters are u64; overflow is an error.

    Fail-Closed Authorization: A missing role record means no capabilities.

Copyright © 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.1.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import core modules on first access."""

    if name in ("StablecoinProgram",):
        from stablecoin import program
        return getattr(program, name)

    if name in ("ComplianceHook", "HookVerdict", "TransferContext",
                "RegistryLayoutReader", "EXECUTE_DISCRIMINATOR",
                "execute_instruction_data"):
        from stablecoin import hook
        return getattr(hook, name)

    if name in ("Ledger", "InMemoryLedger"):
        from stablecoin import ledger
        return getattr(ledger, name)

    if name in ("AuthorizationEngine", "Operation", "Decision"):
        from stablecoin import authorization
        return getattr(authorization, name)

    if name in ("RecordStore", "RegistryStore", "RoleStore", "QuotaStore",
                "BlacklistStore", "SupplyCapStore"):
        from stablecoin import store
        return getattr(store, name)

    if name in ("Registry", "RoleFlags", "RoleRecord", "MinterQuota",
                "SupplyCap", "BlacklistEntry", "UNCAPPED", "FeatureFlags", "Preset"):
        from stablecoin import state
        return getattr(state, name)

    if name in ("Identity", "Keypair", "RecordKey", "derive_address",
                "registry_address", "NULL_IDENTITY", "PROGRAM_ID"):
        from stablecoin import addressing
        return getattr(addressing, name)

    if name in ("StablecoinError", "HookRejected", "LedgerError", "error_for_code"):
        from stablecoin import errors
        return getattr(errors, name)

    if name in ("get_config", "get_config_manager", "ConfigError"):
        from stablecoin import config
        return getattr(config, name)

    raise AttributeError(f"module 'stablecoin' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Program
    "StablecoinProgram",
    "AuthorizationEngine",
    "Operation",
    "Decision",
    # Compliance
    "ComplianceHook",
    "HookVerdict",
    "TransferContext",
    "RegistryLayoutReader",
    "EXECUTE_DISCRIMINATOR",
    "execute_instruction_data",
    "Ledger",
    "InMemoryLedger",
    # Records
    "RecordStore",
    "RegistryStore",
    "RoleStore",
    "QuotaStore",
    "BlacklistStore",
    "SupplyCapStore",
    "Registry",
    "RoleFlags",
    "RoleRecord",
    "MinterQuota",
    "SupplyCap",
    "BlacklistEntry",
    "UNCAPPED",
    "FeatureFlags",
    "Preset",
    "Identity",
    "Keypair",
    "RecordKey",
    "derive_address",
    "registry_address",
    "NULL_IDENTITY",
    "PROGRAM_ID",
    # Errors and config
    "StablecoinError",
    "HookRejected",
    "LedgerError",
    "error_for_code",
    "get_config",
    "get_config_manager",
    "ConfigError",
]
