"""
Stablecoin Observability Framework

Structured logging and tamper-evident audit trail for the authorization core.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    Program / Hook / Store                │
    │  logger.info("msg", registry=x)   audit.log(event)      │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │              StablecoinLogger / AuditLogger              │
    │  correlation IDs, layer tags, hash-chained audit events │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                    logging handlers                      │
    │         StructuredHandler (json) │ StreamHandler (text)  │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import sys
import threading
import time
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class Layer(Enum):
    """Core layers for log categorization."""
    AUTHORIZATION = "authorization"
    STORE = "store"
    HOOK = "hook"
    LEDGER = "ledger"
    PROGRAM = "program"
    CONFIG = "config"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                duration_ms=getattr(record, "duration_ms", None),
                error_code=getattr(record, "error_code", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            stream = self.stream or sys.stderr
            stream.write(event.to_json() + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


class StablecoinLogger:
    """
    Structured logger for core components.

    Every record carries the layer, the operation name and the current
    correlation ID so that one privileged request can be followed across
    program, store, ledger and hook output.
    """

    def __init__(
        self,
        name: str,
        layer: Layer,
        level: str = "info",
        log_format: str = "json",
    ):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"stablecoin.{layer.value}.{name}")
        self._logger.setLevel(getattr(logging, level.upper()))

        if not self._logger.handlers:
            if log_format == "json":
                handler: logging.Handler = StructuredHandler()
            else:
                handler = logging.StreamHandler()
                handler.setFormatter(logging.Formatter(
                    "%(asctime)s %(levelname)s %(name)s: %(message)s"
                ))
            self._logger.addHandler(handler)

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(
        self,
        message: str,
        error_code: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        self._log(logging.ERROR, message, error_code=error_code, exc_info=exc_info, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.INFO if success else logging.WARNING
        status = "completed" if success else "failed"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Get the current correlation ID, creating one if unset."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def get_logger(name: str, layer: Layer) -> StablecoinLogger:
    """Get a logger configured from the live observability config."""
    from stablecoin.config import get_config

    obs = get_config().observability
    return StablecoinLogger(
        name,
        layer,
        level=obs.log_level.get(),
        log_format=obs.log_format.get(),
    )


T = TypeVar("T")


def timed_operation(
    logger: StablecoinLogger,
    operation_name: str,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing and logging operations."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.monotonic() - start) * 1000
                logger.operation(operation_name, duration_ms, success)
        return wrapper
    return decorator


def with_correlation_id(func: Callable[..., T]) -> Callable[..., T]:
    """Run each call under a fresh correlation ID."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        token = set_correlation_id(generate_correlation_id())
        try:
            return func(*args, **kwargs)
        finally:
            correlation_id_var.reset(token)
    return wrapper


# =============================================================================
# AUDIT TRAIL
# =============================================================================

def canonical_json(obj: Any) -> bytes:
    """Canonical JSON bytes: sorted keys, no insignificant whitespace, UTF-8."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class AuditEventType(Enum):
    """One event type per committed operation, plus denials."""
    INITIALIZED = "initialized"
    MINTED = "minted"
    BURNED = "burned"
    FROZEN = "frozen"
    THAWED = "thawed"
    PAUSED = "paused"
    UNPAUSED = "unpaused"
    ROLES_UPDATED = "roles_updated"
    MINTER_UPDATED = "minter_updated"
    SUPPLY_CAP_UPDATED = "supply_cap_updated"
    AUTHORITY_TRANSFERRED = "authority_transferred"
    BLACKLIST_ADDED = "blacklist_added"
    BLACKLIST_REMOVED = "blacklist_removed"
    SEIZED = "seized"
    DENIED = "denied"


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    actor: str
    registry: str
    outcome: str  # success, denied
    details: Dict[str, Any]
    correlation_id: str = ""

    # Tamper evidence
    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self._compute_digest()

    def _compute_digest(self) -> str:
        content = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "registry": self.registry,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return hashlib.sha256(canonical_json(content)).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "registry": self.registry,
            "outcome": self.outcome,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditLogger:
    """
    Tamper-evident audit logger.

    Each event includes a hash chain linking to the previous event,
    making it possible to detect log tampering.
    """

    def __init__(self, logger: Optional[StablecoinLogger] = None):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
        self._counter = 0
        self._logger = logger

    def log(
        self,
        event_type: AuditEventType,
        actor: str,
        registry: str,
        outcome: str = "success",
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Append an audit event."""
        with self._lock:
            self._counter += 1
            previous_digest = self._events[-1].event_digest if self._events else None

            event = AuditEvent(
                event_id=f"evt-{self._counter:012d}",
                event_type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=actor,
                registry=registry,
                outcome=outcome,
                details=dict(details or {}),
                correlation_id=get_correlation_id(),
                previous_event_digest=previous_digest,
            )
            self._events.append(event)

        if self._logger is not None:
            self._logger.info(
                f"AUDIT: {event_type.value} on {registry}",
                operation="audit",
                event_id=event.event_id,
                outcome=outcome,
                event_digest=event.event_digest,
            )
        return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit log chain integrity.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            for i, event in enumerate(self._events):
                if event._compute_digest() != event.event_digest:
                    return (False, i)
                if i > 0 and event.previous_event_digest != self._events[i - 1].event_digest:
                    return (False, i)
            return (True, None)

    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        registry: Optional[str] = None,
        actor: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events, oldest first."""
        with self._lock:
            events = list(self._events)

        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if registry:
            events = [e for e in events if e.registry == registry]
        if actor:
            events = [e for e in events if e.actor == actor]
        if since:
            events = [e for e in events if datetime.fromisoformat(e.timestamp) >= since]

        return events[-limit:]

    def export(self) -> List[Dict[str, Any]]:
        """Export all events as dicts."""
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
