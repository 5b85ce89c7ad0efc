"""
Authorization Engine

Stateless decision: given an operation, the caller, the registry and the
caller's capabilities, may the operation proceed?

Each operation carries one rule. Checks run in a fixed order and the first
failure wins:

    1. compliance mode     (ComplianceNotEnabled)
    2. not paused          (Paused)
    3. capability          (Unauthorized)

Operation-specific argument checks (amounts, text lengths, quota arithmetic)
belong to the program and run around this decision in the order documented
for each operation.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Type

from stablecoin.addressing import Identity
from stablecoin.errors import ComplianceNotEnabled, Paused, RegistryNotFound, StablecoinError, Unauthorized
from stablecoin.state import Registry, RoleFlags


class Operation(Enum):
    """Privileged operations."""
    INITIALIZE = "initialize"
    MINT = "mint"
    BURN = "burn"
    FREEZE = "freeze"
    THAW = "thaw"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    UPDATE_ROLES = "update_roles"
    UPDATE_MINTER_QUOTA = "update_minter_quota"
    UPDATE_SUPPLY_CAP = "update_supply_cap"
    TRANSFER_AUTHORITY = "transfer_authority"
    ADD_TO_BLACKLIST = "add_to_blacklist"
    REMOVE_FROM_BLACKLIST = "remove_from_blacklist"
    SEIZE = "seize"


@dataclass(frozen=True)
class Rule:
    """What an operation requires of its caller and registry.

    ``any_of_roles`` is satisfied by holding at least one of the named
    capabilities. An empty set with ``authority=False`` means any signer.
    """
    any_of_roles: FrozenSet[str] = frozenset()
    authority: bool = False
    compliance: bool = False
    unpaused: bool = False


RULES: Dict[Operation, Rule] = {
    Operation.INITIALIZE: Rule(),
    Operation.MINT: Rule(any_of_roles=frozenset({"minter"}), unpaused=True),
    Operation.BURN: Rule(any_of_roles=frozenset({"burner"}), unpaused=True),
    Operation.FREEZE: Rule(any_of_roles=frozenset({"pauser", "freezer"})),
    Operation.THAW: Rule(any_of_roles=frozenset({"pauser", "freezer"})),
    Operation.PAUSE: Rule(any_of_roles=frozenset({"pauser"})),
    Operation.UNPAUSE: Rule(any_of_roles=frozenset({"pauser"})),
    Operation.UPDATE_ROLES: Rule(authority=True),
    Operation.UPDATE_MINTER_QUOTA: Rule(authority=True),
    Operation.UPDATE_SUPPLY_CAP: Rule(authority=True),
    Operation.TRANSFER_AUTHORITY: Rule(authority=True),
    Operation.ADD_TO_BLACKLIST: Rule(any_of_roles=frozenset({"blacklister"}), compliance=True),
    Operation.REMOVE_FROM_BLACKLIST: Rule(any_of_roles=frozenset({"blacklister"}), compliance=True),
    Operation.SEIZE: Rule(any_of_roles=frozenset({"seizer"}), compliance=True),
}


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""
    operation: Operation
    allowed: bool
    error: Optional[Type[StablecoinError]] = None
    reason: str = ""

    def raise_if_denied(self) -> None:
        if not self.allowed and self.error is not None:
            raise self.error(self.reason or None)


def _holds_any(roles: RoleFlags, names: FrozenSet[str]) -> bool:
    flags = roles.as_dict()
    return any(flags[name] for name in names)


class AuthorizationEngine:
    """Pure decision procedure over a registry snapshot and role flags."""

    def __init__(self, rules: Optional[Dict[Operation, Rule]] = None):
        self._rules = dict(rules or RULES)

    def rule_for(self, operation: Operation) -> Rule:
        return self._rules[operation]

    def decide(
        self,
        operation: Operation,
        caller: Identity,
        registry: Optional[Registry],
        roles: RoleFlags,
    ) -> Decision:
        rule = self._rules[operation]

        if operation is Operation.INITIALIZE:
            return Decision(operation, allowed=True)

        if registry is None:
            return Decision(operation, False, RegistryNotFound)

        if rule.compliance and not registry.is_compliance_mode:
            return Decision(operation, False, ComplianceNotEnabled)

        if rule.unpaused and registry.paused:
            return Decision(operation, False, Paused)

        if rule.authority and caller != registry.authority:
            return Decision(operation, False, Unauthorized, "Unauthorized: caller is not the authority")

        if rule.any_of_roles and not _holds_any(roles, rule.any_of_roles):
            needed = " or ".join(sorted(rule.any_of_roles))
            return Decision(operation, False, Unauthorized, f"Unauthorized: requires {needed} role")

        return Decision(operation, allowed=True)

    def authorize(
        self,
        operation: Operation,
        caller: Identity,
        registry: Optional[Registry],
        roles: RoleFlags,
    ) -> None:
        """Raise the first failing check's error, or return when allowed."""
        self.decide(operation, caller, registry, roles).raise_if_denied()
