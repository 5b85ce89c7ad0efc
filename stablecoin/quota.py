"""
Quota and supply-cap arithmetic.

All issuance arithmetic is u64 with checked addition: a sum past 2**64-1 is
MathOverflow, never a wrap. ``plan_mint`` computes the next quota and registry
values for a mint without touching any store; the program stages its result.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from stablecoin.errors import MathOverflow, QuotaExceeded, SupplyCapExceeded
from stablecoin.hardening import U64_MAX, InvariantChecker, Validators
from stablecoin.state import UNCAPPED, MinterQuota, Registry, SupplyCap


def checked_add(a: int, b: int) -> int:
    """u64 addition. Raises MathOverflow instead of wrapping."""
    a = Validators.validate_u64(a, "lhs")
    b = Validators.validate_u64(b, "rhs")
    total = a + b
    if total > U64_MAX:
        raise MathOverflow(f"Arithmetic overflow: {a} + {b} exceeds u64")
    return total


@dataclass(frozen=True)
class MintPlan:
    """Post-mint values for the quota record and the registry."""
    quota: MinterQuota
    registry: Registry
    amount: int


def plan_mint(
    registry: Registry,
    quota: MinterQuota,
    cap: Optional[SupplyCap],
    amount: int,
) -> MintPlan:
    """Check quota and supply cap for ``amount`` and return the next state.

    Order: quota sum (MathOverflow), quota ceiling (QuotaExceeded), supply sum
    (MathOverflow), then the cap (SupplyCapExceeded) only when a real cap is
    set. Callers have already checked amount, pause state and the minter bit.
    """
    new_minted = checked_add(quota.minted_amount, amount)
    if new_minted > quota.quota:
        raise QuotaExceeded(
            f"Minter quota exceeded: {new_minted} would pass quota {quota.quota}"
        )

    new_total = checked_add(registry.total_minted, amount)
    if cap is not None and cap.cap != UNCAPPED and new_total > cap.cap:
        raise SupplyCapExceeded(
            f"Supply cap exceeded: {new_total} would pass cap {cap.cap}"
        )

    InvariantChecker.check_monotonic_increase("minted_amount", quota.minted_amount, new_minted)
    InvariantChecker.check_within_ceiling("minted_amount", new_minted, quota.quota)

    return MintPlan(
        quota=replace(quota, minted_amount=new_minted),
        registry=replace(registry, total_minted=new_total),
        amount=amount,
    )


def plan_burn(registry: Registry, amount: int) -> Registry:
    return replace(registry, total_burned=checked_add(registry.total_burned, amount))


def validate_quota_update(existing: Optional[MinterQuota], new_quota: int) -> int:
    """A quota may never drop below what the minter already issued."""
    new_quota = Validators.validate_u64(new_quota, "quota")
    minted = existing.minted_amount if existing is not None else 0
    if new_quota < minted:
        raise QuotaExceeded(
            f"Minter quota exceeded: new quota {new_quota} is below minted amount {minted}"
        )
    return new_quota


def normalize_supply_cap(cap: int, total_minted: int) -> int:
    """Stored cap value for a requested cap.

    Zero removes the cap (stored as the uncapped sentinel). Any other value
    must be at least what has already been minted.
    """
    cap = Validators.validate_u64(cap, "cap")
    if cap == 0:
        return UNCAPPED
    if cap < total_minted:
        raise SupplyCapExceeded(
            f"Supply cap exceeded: cap {cap} is below total minted {total_minted}"
        )
    return cap
