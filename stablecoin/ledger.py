"""
Ledger capability.

The balance-holding token ledger is external to the core. ``Ledger`` is the
interface the program calls; ``InMemoryLedger`` is a complete in-process
implementation used for local runs and tests. It keeps one token account per
(mint, owner), honours freeze state and the mint's permanent delegate, and
calls the compliance hook on every transfer of a hook-enabled mint.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from stablecoin.addressing import Identity
from stablecoin.errors import AccountFrozen, AccountNotFound, InsufficientFunds, LedgerError
from stablecoin.hardening import U8_MAX, U64_MAX, Validators
from stablecoin.hook import ComplianceHook, TransferContext, execute_instruction_data
from stablecoin.observability import Layer, get_logger

logger = get_logger("memory", Layer.LEDGER)


class Ledger(ABC):
    """Balance primitives the program relies on."""

    @abstractmethod
    def initialize_mint(
        self,
        mint: Identity,
        decimals: int,
        authority: Identity,
        permanent_delegate: Optional[Identity],
        transfer_hook: bool,
        default_frozen: bool,
    ) -> None:
        ...

    @abstractmethod
    def mint_to(self, mint: Identity, owner: Identity, amount: int) -> None:
        ...

    @abstractmethod
    def burn(self, mint: Identity, owner: Identity, amount: int) -> None:
        ...

    @abstractmethod
    def freeze(self, mint: Identity, owner: Identity) -> None:
        ...

    @abstractmethod
    def thaw(self, mint: Identity, owner: Identity) -> None:
        ...

    @abstractmethod
    def transfer_with_delegate(
        self,
        mint: Identity,
        source: Identity,
        destination: Identity,
        amount: int,
        delegate: Identity,
    ) -> None:
        ...

    @abstractmethod
    def balance_of(self, mint: Identity, owner: Identity) -> int:
        ...


@dataclass
class MintInfo:
    mint: Identity
    decimals: int
    authority: Identity
    permanent_delegate: Optional[Identity]
    transfer_hook: bool
    default_frozen: bool
    supply: int = 0


@dataclass
class TokenAccount:
    mint: Identity
    owner: Identity
    balance: int = 0
    frozen: bool = False


class InMemoryLedger(Ledger):
    """Thread-safe in-process ledger."""

    def __init__(self, hook: Optional[ComplianceHook] = None):
        self._hook = hook
        self._mints: Dict[Identity, MintInfo] = {}
        self._accounts: Dict[Tuple[Identity, Identity], TokenAccount] = {}
        self._lock = threading.RLock()

    # -- helpers ------------------------------------------------------------

    def _mint(self, mint: Identity) -> MintInfo:
        info = self._mints.get(mint)
        if info is None:
            raise AccountNotFound(f"Unknown mint {mint}")
        return info

    def _account(self, mint: Identity, owner: Identity) -> TokenAccount:
        account = self._accounts.get((mint, owner))
        if account is None:
            raise AccountNotFound(f"No token account for {owner} on mint {mint}")
        return account

    def open_account(self, mint: Identity, owner: Identity) -> TokenAccount:
        """Create the owner's token account if missing. New accounts start
        frozen when the mint was created with ``default_frozen``."""
        with self._lock:
            info = self._mint(mint)
            account = self._accounts.get((mint, owner))
            if account is None:
                account = TokenAccount(mint=mint, owner=owner, frozen=info.default_frozen)
                self._accounts[(mint, owner)] = account
            return account

    @staticmethod
    def _would_be_frozen(info: MintInfo, account: Optional[TokenAccount]) -> bool:
        """Frozen state of an existing account, or of the one that would be opened."""
        return account.frozen if account is not None else info.default_frozen

    def mint_info(self, mint: Identity) -> MintInfo:
        with self._lock:
            return self._mint(mint)

    def is_frozen(self, mint: Identity, owner: Identity) -> bool:
        with self._lock:
            return self._account(mint, owner).frozen

    # -- Ledger -------------------------------------------------------------

    def initialize_mint(
        self,
        mint: Identity,
        decimals: int,
        authority: Identity,
        permanent_delegate: Optional[Identity],
        transfer_hook: bool,
        default_frozen: bool,
    ) -> None:
        Validators.validate_uint(decimals, "decimals", U8_MAX).raise_as(LedgerError)
        with self._lock:
            if mint in self._mints:
                raise LedgerError(f"Mint {mint} already initialized")
            self._mints[mint] = MintInfo(
                mint=mint,
                decimals=decimals,
                authority=authority,
                permanent_delegate=permanent_delegate,
                transfer_hook=transfer_hook,
                default_frozen=default_frozen,
            )
        logger.info(
            "Mint initialized",
            operation="initialize_mint",
            mint=str(mint),
            transfer_hook=transfer_hook,
            default_frozen=default_frozen,
        )

    def mint_to(self, mint: Identity, owner: Identity, amount: int) -> None:
        with self._lock:
            info = self._mint(mint)
            account = self._accounts.get((mint, owner))
            if self._would_be_frozen(info, account):
                raise AccountFrozen(f"Token account for {owner} is frozen")
            balance = account.balance if account is not None else 0
            if balance + amount > U64_MAX or info.supply + amount > U64_MAX:
                raise LedgerError("Mint would overflow u64 balance")
            # created only once nothing can fail
            account = self.open_account(mint, owner)
            account.balance += amount
            info.supply += amount

    def burn(self, mint: Identity, owner: Identity, amount: int) -> None:
        with self._lock:
            info = self._mint(mint)
            account = self._account(mint, owner)
            if account.frozen:
                raise AccountFrozen(f"Token account for {owner} is frozen")
            if account.balance < amount:
                raise InsufficientFunds(f"Balance {account.balance} is below burn amount {amount}")
            account.balance -= amount
            info.supply -= amount

    def freeze(self, mint: Identity, owner: Identity) -> None:
        with self._lock:
            self._account(mint, owner).frozen = True

    def thaw(self, mint: Identity, owner: Identity) -> None:
        with self._lock:
            self._account(mint, owner).frozen = False

    def transfer(
        self,
        mint: Identity,
        source: Identity,
        destination: Identity,
        amount: int,
        authority: Optional[Identity] = None,
    ) -> None:
        """Owner-signed transfer. ``authority`` defaults to the source owner."""
        self._transfer(mint, source, destination, amount, authority or source)

    def transfer_with_delegate(
        self,
        mint: Identity,
        source: Identity,
        destination: Identity,
        amount: int,
        delegate: Identity,
    ) -> None:
        with self._lock:
            info = self._mint(mint)
            if info.permanent_delegate is None or info.permanent_delegate != delegate:
                raise LedgerError(f"{delegate} is not the permanent delegate of mint {mint}")
        self._transfer(mint, source, destination, amount, delegate)

    def _transfer(
        self,
        mint: Identity,
        source: Identity,
        destination: Identity,
        amount: int,
        authority: Identity,
    ) -> None:
        with self._lock:
            info = self._mint(mint)
            src = self._account(mint, source)
            dst = self._accounts.get((mint, destination))
            if src.frozen or self._would_be_frozen(info, dst):
                raise AccountFrozen("Source or destination token account is frozen")
            if src.balance < amount:
                raise InsufficientFunds(f"Balance {src.balance} is below transfer amount {amount}")

            if info.transfer_hook and self._hook is not None:
                # hook rejection aborts before any balance moves
                self._hook.execute(
                    execute_instruction_data(amount),
                    TransferContext(
                        mint=mint,
                        source_owner=source,
                        destination_owner=destination,
                        authority=authority,
                        amount=amount,
                    ),
                )

            if dst is None:
                dst = self.open_account(mint, destination)
            src.balance -= amount
            dst.balance += amount

    def balance_of(self, mint: Identity, owner: Identity) -> int:
        with self._lock:
            account = self._accounts.get((mint, owner))
            return account.balance if account is not None else 0
