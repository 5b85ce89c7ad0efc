"""
Stablecoin Program

The state machine over every privileged operation. Each public method is one
atomic unit:

    1. open a store transaction over the operation's declared records
    2. run argument checks and the authorization decision in the documented order
    3. stage record updates
    4. call the ledger primitive (the last step that can fail)
    5. commit, then append an audit event

Any error before the commit discards every staged write. Denials are logged,
appended to the audit trail as ``denied`` events, and re-raised unchanged.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, Optional, Union

from stablecoin.addressing import (
    PROGRAM_ID,
    Identity,
    IdentityLike,
    as_identity,
    blacklist_key,
    minter_key,
    registry_address,
    registry_key,
    role_key,
    supply_cap_key,
)
from stablecoin.authorization import AuthorizationEngine, Operation
from stablecoin.config import StablecoinConfig, get_config
from stablecoin.errors import (
    AlreadyInitialized,
    HookRejected,
    InvalidRoleConfig,
    LedgerError,
    NameTooLong,
    ReasonTooLong,
    RegistryNotFound,
    StablecoinError,
    SymbolTooLong,
    Unauthorized,
    UriTooLong,
    ZeroAmount,
)
from stablecoin.hardening import Validators
from stablecoin.hook import ComplianceHook
from stablecoin.ledger import InMemoryLedger, Ledger
from stablecoin.observability import (
    AuditEventType,
    AuditLogger,
    Layer,
    get_logger,
    timed_operation,
    with_correlation_id,
)
from stablecoin.quota import normalize_supply_cap, plan_burn, plan_mint, validate_quota_update
from stablecoin.state import (
    BlacklistEntry,
    FeatureFlags,
    MinterQuota,
    Preset,
    Registry,
    RoleFlags,
    RoleRecord,
    SupplyCap,
)
from stablecoin.store import (
    BlacklistStore,
    QuotaStore,
    RecordStore,
    RegistryStore,
    RoleStore,
    SupplyCapStore,
    Transaction,
)

logger = get_logger("program", Layer.PROGRAM)

_DENIABLE = (StablecoinError, HookRejected, LedgerError)


class StablecoinProgram:
    """
    Role-gated issuance and compliance control for one or more ledger mints.

    Example:
        program = StablecoinProgram.in_memory()
        program.initialize(admin, mint, "USD Coin", "USDC", "https://x", 6,
                           permanent_delegate=True, transfer_hook=True,
                           default_frozen=False)
        program.update_minter_quota(admin, mint, admin, 1_000_000)
        program.mint(admin, mint, alice, 500)
    """

    def __init__(
        self,
        ledger: Ledger,
        store: Optional[RecordStore] = None,
        program_id: Optional[Identity] = None,
        engine: Optional[AuthorizationEngine] = None,
        audit: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[StablecoinConfig] = None,
    ):
        self.ledger = ledger
        self.store = store or RecordStore()
        self.program_id = program_id or PROGRAM_ID
        self.engine = engine or AuthorizationEngine()
        self.audit = audit or AuditLogger(logger)
        self._clock = clock or (lambda: int(time.time()))
        self._config = config

    @classmethod
    def in_memory(cls, **kwargs: Any) -> "StablecoinProgram":
        """Program wired to a fresh store, an InMemoryLedger and a hook over that store."""
        store = kwargs.pop("store", None) or RecordStore()
        program_id = kwargs.get("program_id")
        hook = ComplianceHook(store, program_id=program_id, config=kwargs.get("config"))
        return cls(InMemoryLedger(hook), store=store, **kwargs)

    @property
    def config(self) -> StablecoinConfig:
        return self._config or get_config()

    # -- plumbing -----------------------------------------------------------

    def registry_address(self, ledger_handle: IdentityLike) -> Identity:
        return registry_address(as_identity(ledger_handle), self.program_id)

    def _record(
        self,
        event_type: AuditEventType,
        actor: Identity,
        ledger_handle: Identity,
        outcome: str = "success",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.config.observability.audit_enabled.get():
            return
        self.audit.log(
            event_type,
            actor=str(actor),
            registry=str(self.registry_address(ledger_handle)),
            outcome=outcome,
            details=details,
        )

    @contextmanager
    def _operation(
        self,
        operation: Operation,
        caller: Identity,
        ledger_handle: Identity,
        *keys,
    ) -> Iterator[Transaction]:
        try:
            with self.store.transaction(keys) as tx:
                yield tx
        except _DENIABLE as e:
            code = getattr(e, "code", None)
            logger.warning(
                f"Operation {operation.value} denied: {e}",
                operation=operation.value,
                error_code=type(e).__name__,
                caller=str(caller),
                mint=str(ledger_handle),
            )
            self._record(
                AuditEventType.DENIED,
                caller,
                ledger_handle,
                outcome="denied",
                details={"operation": operation.value, "error": type(e).__name__, "code": code},
            )
            raise

    def _authorize(
        self,
        tx: Transaction,
        operation: Operation,
        caller: Identity,
        ledger_handle: Identity,
    ) -> Registry:
        registry = RegistryStore(tx).get(ledger_handle)
        if registry is None:
            raise RegistryNotFound()
        roles = RoleFlags.none()
        if self.engine.rule_for(operation).any_of_roles:
            roles = RoleStore(tx).roles_of(self.registry_address(ledger_handle), caller)
        self.engine.authorize(operation, caller, registry, roles)
        return registry

    @staticmethod
    def _resolve_features(preset: Optional[Union[Preset, str]]) -> FeatureFlags:
        if preset is None:
            return Preset.SSS_1.features
        try:
            return Preset(preset).features
        except ValueError:
            raise InvalidRoleConfig(f"Invalid role configuration: unknown preset {preset!r}") from None

    @staticmethod
    def _positive_amount(amount: int) -> int:
        amount = Validators.validate_u64(amount)
        if amount == 0:
            raise ZeroAmount()
        return amount

    # -- lifecycle ----------------------------------------------------------

    @with_correlation_id
    @timed_operation(logger, "initialize")
    def initialize(
        self,
        authority: IdentityLike,
        ledger_handle: IdentityLike,
        name: str,
        symbol: str,
        uri: str,
        decimals: int,
        permanent_delegate: Optional[bool] = None,
        transfer_hook: Optional[bool] = None,
        default_frozen: Optional[bool] = None,
        preset: Optional[Union[Preset, str]] = None,
    ) -> Registry:
        """Create the registry for ``ledger_handle``.

        The feature flags start from ``preset`` (SSS_1 when omitted); any flag
        passed explicitly overrides the preset's value. The initializer becomes
        the authority and is granted all six roles.
        """
        authority, ledger_handle = as_identity(authority), as_identity(ledger_handle)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.INITIALIZE, authority, ledger_handle,
            registry_key(ledger_handle), role_key(reg, authority),
        ) as tx:
            Validators.validate_bounded_text(name, "name", Validators.MAX_NAME_LEN).raise_as(NameTooLong)
            Validators.validate_bounded_text(symbol, "symbol", Validators.MAX_SYMBOL_LEN).raise_as(SymbolTooLong)
            Validators.validate_bounded_text(uri, "uri", Validators.MAX_URI_LEN).raise_as(UriTooLong)
            Validators.validate_uint(decimals, "decimals", Validators.MAX_DECIMALS).raise_as(InvalidRoleConfig)
            features = self._resolve_features(preset).override(
                permanent_delegate, transfer_hook, default_frozen,
            )

            registries = RegistryStore(tx)
            if registries.exists(ledger_handle):
                raise AlreadyInitialized()
            self.engine.authorize(Operation.INITIALIZE, authority, None, RoleFlags.none())

            registry = registries.put(Registry(
                authority=authority,
                ledger_handle=ledger_handle,
                name=name,
                symbol=symbol,
                uri=uri,
                decimals=decimals,
                permanent_delegate=features.permanent_delegate,
                transfer_hook=features.transfer_hook,
                default_frozen=features.default_frozen,
            ))
            RoleStore(tx).put(RoleRecord(registry=reg, holder=authority, roles=RoleFlags.all()))

            self.ledger.initialize_mint(
                ledger_handle,
                decimals=decimals,
                authority=reg,
                permanent_delegate=reg if features.permanent_delegate else None,
                transfer_hook=features.transfer_hook,
                default_frozen=features.default_frozen,
            )

        self._record(AuditEventType.INITIALIZED, authority, ledger_handle, details={
            "name": name,
            "symbol": symbol,
            "decimals": decimals,
            "preset": Preset(preset).value if preset is not None else None,
            "compliance_mode": registry.is_compliance_mode,
        })
        return registry

    # -- issuance -----------------------------------------------------------

    @with_correlation_id
    @timed_operation(logger, "mint")
    def mint(self, minter: IdentityLike, ledger_handle: IdentityLike, recipient: IdentityLike, amount: int) -> None:
        minter, ledger_handle, recipient = as_identity(minter), as_identity(ledger_handle), as_identity(recipient)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.MINT, minter, ledger_handle,
            registry_key(ledger_handle), role_key(reg, minter),
            minter_key(reg, minter), supply_cap_key(reg),
        ) as tx:
            amount = self._positive_amount(amount)
            registry = self._authorize(tx, Operation.MINT, minter, ledger_handle)

            quotas = QuotaStore(tx)
            plan = plan_mint(
                registry,
                quotas.get_or_empty(reg, minter),
                SupplyCapStore(tx).get(reg),
                amount,
            )
            quotas.put(plan.quota)
            RegistryStore(tx).put(plan.registry)

            self.ledger.mint_to(ledger_handle, recipient, amount)

        self._record(AuditEventType.MINTED, minter, ledger_handle, details={
            "recipient": str(recipient),
            "amount": amount,
            "minter_total": plan.quota.minted_amount,
        })

    @with_correlation_id
    @timed_operation(logger, "burn")
    def burn(self, burner: IdentityLike, ledger_handle: IdentityLike, amount: int) -> None:
        """Burn ``amount`` from the burner's own token account."""
        burner, ledger_handle = as_identity(burner), as_identity(ledger_handle)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.BURN, burner, ledger_handle,
            registry_key(ledger_handle), role_key(reg, burner),
        ) as tx:
            amount = self._positive_amount(amount)
            registry = self._authorize(tx, Operation.BURN, burner, ledger_handle)
            RegistryStore(tx).put(plan_burn(registry, amount))

            self.ledger.burn(ledger_handle, burner, amount)

        self._record(AuditEventType.BURNED, burner, ledger_handle, details={"amount": amount})

    # -- account control ----------------------------------------------------

    def _set_frozen(self, operation: Operation, caller: Identity, ledger_handle: Identity, account: Identity) -> None:
        reg = self.registry_address(ledger_handle)
        with self._operation(
            operation, caller, ledger_handle,
            registry_key(ledger_handle), role_key(reg, caller),
        ) as tx:
            self._authorize(tx, operation, caller, ledger_handle)
            if operation is Operation.FREEZE:
                self.ledger.freeze(ledger_handle, account)
            else:
                self.ledger.thaw(ledger_handle, account)

    @with_correlation_id
    @timed_operation(logger, "freeze")
    def freeze(self, caller: IdentityLike, ledger_handle: IdentityLike, account: IdentityLike) -> None:
        caller, ledger_handle, account = as_identity(caller), as_identity(ledger_handle), as_identity(account)
        self._set_frozen(Operation.FREEZE, caller, ledger_handle, account)
        self._record(AuditEventType.FROZEN, caller, ledger_handle, details={"account": str(account)})

    @with_correlation_id
    @timed_operation(logger, "thaw")
    def thaw(self, caller: IdentityLike, ledger_handle: IdentityLike, account: IdentityLike) -> None:
        caller, ledger_handle, account = as_identity(caller), as_identity(ledger_handle), as_identity(account)
        self._set_frozen(Operation.THAW, caller, ledger_handle, account)
        self._record(AuditEventType.THAWED, caller, ledger_handle, details={"account": str(account)})

    def _set_paused(self, operation: Operation, caller: Identity, ledger_handle: Identity, paused: bool) -> None:
        reg = self.registry_address(ledger_handle)
        with self._operation(
            operation, caller, ledger_handle,
            registry_key(ledger_handle), role_key(reg, caller),
        ) as tx:
            registry = self._authorize(tx, operation, caller, ledger_handle)
            RegistryStore(tx).put(replace(registry, paused=paused))

    @with_correlation_id
    @timed_operation(logger, "pause")
    def pause(self, caller: IdentityLike, ledger_handle: IdentityLike) -> None:
        caller, ledger_handle = as_identity(caller), as_identity(ledger_handle)
        self._set_paused(Operation.PAUSE, caller, ledger_handle, True)
        self._record(AuditEventType.PAUSED, caller, ledger_handle)

    @with_correlation_id
    @timed_operation(logger, "unpause")
    def unpause(self, caller: IdentityLike, ledger_handle: IdentityLike) -> None:
        caller, ledger_handle = as_identity(caller), as_identity(ledger_handle)
        self._set_paused(Operation.UNPAUSE, caller, ledger_handle, False)
        self._record(AuditEventType.UNPAUSED, caller, ledger_handle)

    # -- authority-gated ----------------------------------------------------

    @with_correlation_id
    @timed_operation(logger, "update_roles")
    def update_roles(
        self,
        authority: IdentityLike,
        ledger_handle: IdentityLike,
        holder: IdentityLike,
        roles: RoleFlags,
    ) -> RoleRecord:
        """Replace ``holder``'s capabilities with exactly ``roles``."""
        authority, ledger_handle, holder = as_identity(authority), as_identity(ledger_handle), as_identity(holder)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.UPDATE_ROLES, authority, ledger_handle,
            registry_key(ledger_handle), role_key(reg, holder),
        ) as tx:
            self._authorize(tx, Operation.UPDATE_ROLES, authority, ledger_handle)
            if holder.is_null:
                raise InvalidRoleConfig("Invalid role configuration: holder is the null identity")
            if not isinstance(roles, RoleFlags):
                raise InvalidRoleConfig(
                    f"Invalid role configuration: expected RoleFlags, got {type(roles).__name__}"
                )
            record = RoleStore(tx).put(RoleRecord(registry=reg, holder=holder, roles=roles))

        self._record(AuditEventType.ROLES_UPDATED, authority, ledger_handle, details={
            "holder": str(holder),
            "roles": roles.as_dict(),
        })
        return record

    @with_correlation_id
    @timed_operation(logger, "update_minter_quota")
    def update_minter_quota(
        self,
        authority: IdentityLike,
        ledger_handle: IdentityLike,
        minter: IdentityLike,
        quota: int,
    ) -> MinterQuota:
        """Set ``minter``'s quota, keeping what it has already minted."""
        authority, ledger_handle, minter = as_identity(authority), as_identity(ledger_handle), as_identity(minter)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.UPDATE_MINTER_QUOTA, authority, ledger_handle,
            registry_key(ledger_handle), minter_key(reg, minter),
        ) as tx:
            self._authorize(tx, Operation.UPDATE_MINTER_QUOTA, authority, ledger_handle)
            quotas = QuotaStore(tx)
            existing = quotas.get(reg, minter)
            quota = validate_quota_update(existing, quota)
            record = quotas.put(
                replace(existing, quota=quota) if existing is not None
                else MinterQuota(registry=reg, minter=minter, quota=quota)
            )

        self._record(AuditEventType.MINTER_UPDATED, authority, ledger_handle, details={
            "minter": str(minter),
            "quota": quota,
            "minted_amount": record.minted_amount,
        })
        return record

    @with_correlation_id
    @timed_operation(logger, "update_supply_cap")
    def update_supply_cap(self, authority: IdentityLike, ledger_handle: IdentityLike, cap: int) -> SupplyCap:
        """Set the supply cap. Zero removes it."""
        authority, ledger_handle = as_identity(authority), as_identity(ledger_handle)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.UPDATE_SUPPLY_CAP, authority, ledger_handle,
            registry_key(ledger_handle), supply_cap_key(reg),
        ) as tx:
            registry = self._authorize(tx, Operation.UPDATE_SUPPLY_CAP, authority, ledger_handle)
            stored = SupplyCapStore(tx).put(reg, SupplyCap(cap=normalize_supply_cap(cap, registry.total_minted)))

        self._record(AuditEventType.SUPPLY_CAP_UPDATED, authority, ledger_handle, details={
            "cap": stored.cap if stored.is_capped else None,
        })
        return stored

    @with_correlation_id
    @timed_operation(logger, "transfer_authority")
    def transfer_authority(
        self,
        authority: IdentityLike,
        ledger_handle: IdentityLike,
        new_authority: IdentityLike,
    ) -> Registry:
        """Hand the authority to ``new_authority``. Role records are not moved."""
        authority, ledger_handle = as_identity(authority), as_identity(ledger_handle)
        new_authority = as_identity(new_authority)

        with self._operation(
            Operation.TRANSFER_AUTHORITY, authority, ledger_handle,
            registry_key(ledger_handle),
        ) as tx:
            registry = self._authorize(tx, Operation.TRANSFER_AUTHORITY, authority, ledger_handle)
            if new_authority.is_null:
                raise Unauthorized("Unauthorized: new authority is the null identity")
            if new_authority == registry.authority:
                raise InvalidRoleConfig("Invalid role configuration: new authority equals current authority")
            updated = RegistryStore(tx).put(replace(registry, authority=new_authority))

        self._record(AuditEventType.AUTHORITY_TRANSFERRED, authority, ledger_handle, details={
            "previous_authority": str(authority),
            "new_authority": str(new_authority),
        })
        return updated

    # -- compliance ---------------------------------------------------------

    @with_correlation_id
    @timed_operation(logger, "add_to_blacklist")
    def add_to_blacklist(
        self,
        blacklister: IdentityLike,
        ledger_handle: IdentityLike,
        address: IdentityLike,
        reason: str,
    ) -> BlacklistEntry:
        blacklister, ledger_handle, address = as_identity(blacklister), as_identity(ledger_handle), as_identity(address)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.ADD_TO_BLACKLIST, blacklister, ledger_handle,
            registry_key(ledger_handle), role_key(reg, blacklister), blacklist_key(reg, address),
        ) as tx:
            self._authorize(tx, Operation.ADD_TO_BLACKLIST, blacklister, ledger_handle)
            Validators.validate_bounded_text(reason, "reason", Validators.MAX_REASON_LEN).raise_as(ReasonTooLong)
            entry = BlacklistStore(tx).create(BlacklistEntry(
                registry=reg,
                address=address,
                reason=reason,
                blacklisted_at=self._clock(),
                blacklisted_by=blacklister,
            ))

        self._record(AuditEventType.BLACKLIST_ADDED, blacklister, ledger_handle, details={
            "address": str(address),
            "reason": reason,
        })
        return entry

    @with_correlation_id
    @timed_operation(logger, "remove_from_blacklist")
    def remove_from_blacklist(
        self,
        blacklister: IdentityLike,
        ledger_handle: IdentityLike,
        address: IdentityLike,
    ) -> None:
        blacklister, ledger_handle, address = as_identity(blacklister), as_identity(ledger_handle), as_identity(address)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.REMOVE_FROM_BLACKLIST, blacklister, ledger_handle,
            registry_key(ledger_handle), role_key(reg, blacklister), blacklist_key(reg, address),
        ) as tx:
            self._authorize(tx, Operation.REMOVE_FROM_BLACKLIST, blacklister, ledger_handle)
            BlacklistStore(tx).remove(reg, address)

        self._record(AuditEventType.BLACKLIST_REMOVED, blacklister, ledger_handle, details={
            "address": str(address),
        })

    @with_correlation_id
    @timed_operation(logger, "seize")
    def seize(
        self,
        seizer: IdentityLike,
        ledger_handle: IdentityLike,
        source: IdentityLike,
        destination: IdentityLike,
    ) -> int:
        """Move the full balance of ``source`` to ``destination`` as permanent delegate.

        The transfer passes through the compliance hook like any other.
        Returns the amount moved.
        """
        seizer, ledger_handle = as_identity(seizer), as_identity(ledger_handle)
        source, destination = as_identity(source), as_identity(destination)
        reg = self.registry_address(ledger_handle)

        with self._operation(
            Operation.SEIZE, seizer, ledger_handle,
            registry_key(ledger_handle), role_key(reg, seizer),
        ) as tx:
            self._authorize(tx, Operation.SEIZE, seizer, ledger_handle)
            amount = self.ledger.balance_of(ledger_handle, source)
            if amount == 0:
                raise ZeroAmount()
            self.ledger.transfer_with_delegate(ledger_handle, source, destination, amount, delegate=reg)

        self._record(AuditEventType.SEIZED, seizer, ledger_handle, details={
            "from": str(source),
            "to": str(destination),
            "amount": amount,
        })
        return amount

    # -- reads --------------------------------------------------------------

    def get_registry(self, ledger_handle: IdentityLike) -> Optional[Registry]:
        return RegistryStore(self.store).get(as_identity(ledger_handle))

    def get_roles(self, ledger_handle: IdentityLike, holder: IdentityLike) -> RoleFlags:
        return RoleStore(self.store).roles_of(self.registry_address(ledger_handle), as_identity(holder))

    def get_minter_quota(self, ledger_handle: IdentityLike, minter: IdentityLike) -> Optional[MinterQuota]:
        return QuotaStore(self.store).get(self.registry_address(ledger_handle), as_identity(minter))

    def get_supply_cap(self, ledger_handle: IdentityLike) -> Optional[int]:
        """The cap in base units, or None when uncapped."""
        cap = SupplyCapStore(self.store).get(self.registry_address(ledger_handle))
        if cap is None or not cap.is_capped:
            return None
        return cap.cap

    def is_blacklisted(self, ledger_handle: IdentityLike, address: IdentityLike) -> bool:
        return BlacklistStore(self.store).is_blacklisted(self.registry_address(ledger_handle), as_identity(address))

    def total_supply(self, ledger_handle: IdentityLike) -> int:
        """Circulating supply: total minted less total burned."""
        registry = self.get_registry(ledger_handle)
        if registry is None:
            raise RegistryNotFound()
        return registry.circulating_supply
