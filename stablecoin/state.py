"""
Record definitions.

Records are immutable; an operation builds the next version with
``dataclasses.replace`` and stages it in the store, so a failed operation never
leaves a half-updated object behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from stablecoin.addressing import CANONICAL_BUMP, Identity
from stablecoin.hardening import U64_MAX

UNCAPPED = U64_MAX


@dataclass(frozen=True)
class Registry:
    """Root record for one governed asset."""
    authority: Identity
    ledger_handle: Identity
    name: str
    symbol: str
    uri: str
    decimals: int
    # fixed at creation
    permanent_delegate: bool
    transfer_hook: bool
    default_frozen: bool
    paused: bool = False
    total_minted: int = 0
    total_burned: int = 0
    bump: int = CANONICAL_BUMP

    @property
    def is_compliance_mode(self) -> bool:
        return self.permanent_delegate and self.transfer_hook

    @property
    def circulating_supply(self) -> int:
        return self.total_minted - self.total_burned


@dataclass(frozen=True)
class RoleFlags:
    """Six independent capabilities. No bit implies another."""
    minter: bool = False
    burner: bool = False
    pauser: bool = False
    freezer: bool = False
    blacklister: bool = False
    seizer: bool = False

    LEN = 6

    @classmethod
    def all(cls) -> "RoleFlags":
        return cls(True, True, True, True, True, True)

    @classmethod
    def none(cls) -> "RoleFlags":
        return cls()

    def as_dict(self) -> Dict[str, bool]:
        return {
            "minter": self.minter,
            "burner": self.burner,
            "pauser": self.pauser,
            "freezer": self.freezer,
            "blacklister": self.blacklister,
            "seizer": self.seizer,
        }


@dataclass(frozen=True)
class RoleRecord:
    registry: Identity
    holder: Identity
    roles: RoleFlags
    bump: int = CANONICAL_BUMP


@dataclass(frozen=True)
class MinterQuota:
    """Per-minter issuance ceiling and running total."""
    registry: Identity
    minter: Identity
    quota: int
    minted_amount: int = 0
    bump: int = CANONICAL_BUMP

    @property
    def remaining(self) -> int:
        return self.quota - self.minted_amount


@dataclass(frozen=True)
class SupplyCap:
    cap: int = UNCAPPED
    bump: int = CANONICAL_BUMP

    @property
    def is_capped(self) -> bool:
        return self.cap != UNCAPPED


@dataclass(frozen=True)
class BlacklistEntry:
    """Audit payload for a blocked address. Only existence matters to the hook."""
    registry: Identity
    address: Identity
    reason: str
    blacklisted_at: int
    blacklisted_by: Identity
    bump: int = CANONICAL_BUMP


@dataclass(frozen=True)
class FeatureFlags:
    """The three ledger features fixed when a registry is created."""
    permanent_delegate: bool = False
    transfer_hook: bool = False
    default_frozen: bool = False

    def override(
        self,
        permanent_delegate: Optional[bool] = None,
        transfer_hook: Optional[bool] = None,
        default_frozen: Optional[bool] = None,
    ) -> "FeatureFlags":
        """Copy with every explicitly given flag replacing the bundled one."""
        return FeatureFlags(
            permanent_delegate=self.permanent_delegate if permanent_delegate is None else bool(permanent_delegate),
            transfer_hook=self.transfer_hook if transfer_hook is None else bool(transfer_hook),
            default_frozen=self.default_frozen if default_frozen is None else bool(default_frozen),
        )


class Preset(Enum):
    """
    Named feature bundles.

    SSS_1 is a plain issuer-controlled token. SSS_2 adds the permanent
    delegate and the transfer hook (compliance mode) and opens every new
    token account frozen.
    """
    SSS_1 = "SSS_1"
    SSS_2 = "SSS_2"

    @property
    def features(self) -> FeatureFlags:
        if self is Preset.SSS_2:
            return FeatureFlags(permanent_delegate=True, transfer_hook=True, default_frozen=True)
        return FeatureFlags()
