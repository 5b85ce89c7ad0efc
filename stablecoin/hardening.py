"""
Stablecoin Validation and Hardening Module

Input validation, thread-safety primitives, and invariant enforcement shared by
the store, the authorization engine, and the program layer:

1. Bounded text validation (UTF-8 byte length, not character count)
2. Unsigned integer range validation (u8 / u64 / i64)
3. Thread-safety primitives
4. Invariant enforcement for monotonic counters

Security Model:
    - All inputs are untrusted until validated
    - All state mutations are atomic
    - All integer fields are range-checked before they reach the codec

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, TypeVar

from stablecoin.errors import MathOverflow, StablecoinError


U8_MAX = 2**8 - 1
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class InvariantViolation(Exception):
    """State invariant violated."""
    pass


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    @classmethod
    def success(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> "ValidationResult":
        return cls(is_valid=False, errors=errors)

    def raise_as(self, error_cls: Type[StablecoinError]) -> Any:
        """Raise ``error_cls`` if invalid, otherwise return the sanitized value."""
        if not self.is_valid:
            raise error_cls("; ".join(str(e) for e in self.errors))
        return self.sanitized_value


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    MAX_NAME_LEN = 32
    MAX_SYMBOL_LEN = 10
    MAX_URI_LEN = 200
    MAX_REASON_LEN = 100
    MAX_DECIMALS = 18

    @classmethod
    def validate_bounded_text(
        cls,
        value: Any,
        field_name: str,
        max_bytes: int,
    ) -> ValidationResult:
        """Validate a string whose UTF-8 encoding must fit in ``max_bytes``.

        Limits are byte limits because the wire layout stores the encoded form.
        The value is not stripped or otherwise rewritten.
        """
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        encoded = value.encode("utf-8")
        if len(encoded) > max_bytes:
            return ValidationResult.failure([
                ValidationError(field_name, f"Too long ({len(encoded)} bytes, max {max_bytes})", value)
            ])
        return ValidationResult.success(value)

    @classmethod
    def validate_uint(
        cls,
        value: Any,
        field_name: str,
        max_value: int = U64_MAX,
    ) -> ValidationResult:
        """Validate a non-negative integer that fits in ``max_value``."""
        # bool is an int subclass; reject it so True never means 1 token
        if not isinstance(value, int) or isinstance(value, bool):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value < 0 or value > max_value:
            return ValidationResult.failure([
                ValidationError(field_name, f"Out of range [0, {max_value}]", value)
            ])
        return ValidationResult.success(value)

    @classmethod
    def validate_u64(cls, value: Any, field_name: str = "amount") -> int:
        """Validate a u64 amount, raising MathOverflow when out of range."""
        return cls.validate_uint(value, field_name, U64_MAX).raise_as(MathOverflow)

    @classmethod
    def validate_i64(cls, value: Any, field_name: str = "timestamp") -> ValidationResult:
        if not isinstance(value, int) or isinstance(value, bool):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value < I64_MIN or value > I64_MAX:
            return ValidationResult.failure([
                ValidationError(field_name, f"Out of range [{I64_MIN}, {I64_MAX}]", value)
            ])
        return ValidationResult.success(value)


# =============================================================================
# THREAD SAFETY
# =============================================================================

T = TypeVar("T")


class ThreadSafeDict(Dict[Any, T]):
    """Thread-safe dictionary wrapper."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lock = threading.RLock()

    def __getitem__(self, key: Any) -> T:
        with self._lock:
            return super().__getitem__(key)

    def __setitem__(self, key: Any, value: T) -> None:
        with self._lock:
            super().__setitem__(key, value)

    def __delitem__(self, key: Any) -> None:
        with self._lock:
            super().__delitem__(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return super().__contains__(key)

    def __iter__(self):
        with self._lock:
            return iter(list(super().keys()))

    def __len__(self):
        with self._lock:
            return super().__len__()

    def get(self, key: Any, default: Optional[T] = None) -> Optional[T]:
        with self._lock:
            return super().get(key, default)

    def pop(self, key: Any, *args) -> T:
        with self._lock:
            return super().pop(key, *args)

    @contextmanager
    def transaction(self):
        """Context manager for atomic multi-operation transactions."""
        with self._lock:
            yield self


class AtomicCounter:
    """Thread-safe counter."""

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self, delta: int = 1) -> int:
        """Atomically increment and return new value."""
        with self._lock:
            self._value += delta
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value


# =============================================================================
# STATE INVARIANTS
# =============================================================================

class InvariantChecker:
    """Enforces record invariants before a write is staged."""

    @staticmethod
    def check_monotonic_increase(field_name: str, old_value: int, new_value: int) -> None:
        """Ensure a lifetime counter only grows."""
        if new_value < old_value:
            raise InvariantViolation(
                f"{field_name} must be monotonically increasing: "
                f"cannot go from {old_value} to {new_value}"
            )

    @staticmethod
    def check_within_ceiling(field_name: str, value: int, ceiling: int) -> None:
        """Ensure a running total never passes its ceiling."""
        if value > ceiling:
            raise InvariantViolation(f"{field_name} {value} exceeds ceiling {ceiling}")
