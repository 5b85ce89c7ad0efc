"""
Stablecoin Error Taxonomy

Every failure the core can raise. Program errors carry a stable numeric code
(6000 + declaration index) so that clients decoding a rejected operation see
the same number regardless of which component raised it.

    6000 Unauthorized           6008 SymbolTooLong
    6001 Paused                 6009 UriTooLong
    6002 ComplianceNotEnabled   6010 ReasonTooLong
    6003 AlreadyBlacklisted     6011 Blacklisted
    6004 NotBlacklisted         6012 MathOverflow
    6005 QuotaExceeded          6013 InvalidRoleConfig
    6006 ZeroAmount             6014 SupplyCapExceeded
    6007 NameTooLong            6015 AlreadyInitialized
                                6016 RegistryNotFound

Hook errors live in their own range because the hook is a separate component
with its own error table.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from typing import Dict, Optional, Type


class StablecoinError(Exception):
    """Base class for every validation failure of a privileged operation."""

    code: int = 6000
    default_message: str = "Stablecoin operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return type(self).__name__


class Unauthorized(StablecoinError):
    code = 6000
    default_message = "Unauthorized: caller lacks required role"


class Paused(StablecoinError):
    code = 6001
    default_message = "Stablecoin is paused"


class ComplianceNotEnabled(StablecoinError):
    code = 6002
    default_message = "Compliance module not enabled for this stablecoin"


class AlreadyBlacklisted(StablecoinError):
    code = 6003
    default_message = "Address is already blacklisted"


class NotBlacklisted(StablecoinError):
    code = 6004
    default_message = "Address is not blacklisted"


class QuotaExceeded(StablecoinError):
    code = 6005
    default_message = "Minter quota exceeded"


class ZeroAmount(StablecoinError):
    code = 6006
    default_message = "Amount must be greater than zero"


class NameTooLong(StablecoinError):
    code = 6007
    default_message = "Name too long (max 32 bytes)"


class SymbolTooLong(StablecoinError):
    code = 6008
    default_message = "Symbol too long (max 10 bytes)"


class UriTooLong(StablecoinError):
    code = 6009
    default_message = "URI too long (max 200 bytes)"


class ReasonTooLong(StablecoinError):
    code = 6010
    default_message = "Reason too long (max 100 bytes)"


class Blacklisted(StablecoinError):
    code = 6011
    default_message = "Address is blacklisted"


class MathOverflow(StablecoinError):
    code = 6012
    default_message = "Arithmetic overflow"


class InvalidRoleConfig(StablecoinError):
    code = 6013
    default_message = "Invalid role configuration"


class SupplyCapExceeded(StablecoinError):
    code = 6014
    default_message = "Supply cap exceeded"


class AlreadyInitialized(StablecoinError):
    code = 6015
    default_message = "Registry already initialized for this ledger mint"


class RegistryNotFound(StablecoinError):
    code = 6016
    default_message = "No registry exists for this ledger mint"


# =============================================================================
# HOOK ERRORS
# =============================================================================

class HookRejected(Exception):
    """The compliance hook refused a transfer."""

    code: int = 7000
    default_message = "Transfer rejected by compliance hook"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TransferBlacklisted(HookRejected):
    code = 7000
    default_message = "Transfer denied: address is blacklisted"


class TransferPaused(HookRejected):
    code = 7001
    default_message = "Transfer denied: stablecoin is paused"


class InvalidInstruction(HookRejected):
    code = 7002
    default_message = "Invalid instruction discriminator for transfer hook"


# =============================================================================
# LEDGER ERRORS
# =============================================================================

class LedgerError(Exception):
    """The external ledger refused a balance-affecting primitive."""
    pass


class AccountNotFound(LedgerError):
    pass


class AccountFrozen(LedgerError):
    pass


class InsufficientFunds(LedgerError):
    pass


_BY_CODE: Dict[int, Type[StablecoinError]] = {
    cls.code: cls
    for cls in (
        Unauthorized,
        Paused,
        ComplianceNotEnabled,
        AlreadyBlacklisted,
        NotBlacklisted,
        QuotaExceeded,
        ZeroAmount,
        NameTooLong,
        SymbolTooLong,
        UriTooLong,
        ReasonTooLong,
        Blacklisted,
        MathOverflow,
        InvalidRoleConfig,
        SupplyCapExceeded,
        AlreadyInitialized,
        RegistryNotFound,
    )
}


def error_for_code(code: int) -> Type[StablecoinError]:
    """Map a numeric program error code back to its exception class."""
    try:
        return _BY_CODE[code]
    except KeyError:
        raise ValueError(f"Unknown stablecoin error code: {code}") from None
