"""
Stablecoin Configuration System

Unified configuration management with YAML files, environment variables,
schema validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (STABLECOIN_*)
    2. Runtime overrides
    3. User config file (~/.stablecoin/config.yaml)
    4. Project config file (./stablecoin.yaml)
    5. Default values

Wire-format limits (name/symbol/uri/reason lengths, decimals) are protocol
constants and live in ``hardening``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml
from jsonschema import Draft202012Validator

T = TypeVar("T")

CONFIG_SCHEMA_PATH = Path(__file__).parent / "schemas" / "config.schema.json"


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])

        return self._value if self._value is not None else self.default

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if self.validator and not self.validator(value):
            raise ConfigError(f"Invalid value for config: {value}")

        old_value = self._value
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        else:
            return value  # type: ignore

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class ComplianceConfig:
    """Configuration for the compliance hook and the seize path."""
    seize_bypasses_blacklist: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="STABLECOIN_SEIZE_BYPASSES_BLACKLIST",
        description="Let seize transfers through the hook's blacklist check (pause still applies)",
    ))
    log_malformed_registry: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="STABLECOIN_LOG_MALFORMED_REGISTRY",
        description="Warn when the hook falls back to 'not paused' on unreadable registry bytes",
    ))


@dataclass
class StorageConfig:
    """Configuration for the record store."""
    record_deposit: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=1,
        env_var="STABLECOIN_RECORD_DEPOSIT",
        description="Custodial balance stamped on every stored record",
        validator=lambda x: isinstance(x, int) and x > 0,
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for logging and audit."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="STABLECOIN_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="STABLECOIN_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))
    audit_enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="STABLECOIN_AUDIT_ENABLED",
        description="Record hash-chained audit events for every operation",
    ))


@dataclass
class StablecoinConfig:
    """
    Root configuration.

    Aggregates all component configurations and provides
    serialization helpers.
    """
    compliance: ComplianceConfig = field(default_factory=ComplianceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False)


@lru_cache(maxsize=1)
def _config_validator() -> Draft202012Validator:
    schema = json.loads(CONFIG_SCHEMA_PATH.read_text(encoding="utf-8"))
    return Draft202012Validator(schema)


def validate_config_document(data: Any) -> List[str]:
    """Validate a parsed config document against the config schema.

    Returns list of validation error messages (empty if valid).
    """
    return [
        f"{error.json_path}: {error.message}"
        for error in _config_validator().iter_errors(data)
    ]


def apply_config_dict(config: StablecoinConfig, data: Dict[str, Any]) -> None:
    """Apply a nested dict of values onto a config tree."""
    def apply_to_config(config_obj: Any, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            if hasattr(config_obj, key):
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value)

    apply_to_config(config, data)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = StablecoinConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> StablecoinConfig:
        """Get the current configuration."""
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if not data:
            return

        errors = validate_config_document(data)
        if errors:
            raise ConfigError(f"Invalid configuration file {path}: {errors[0]}")

        apply_config_dict(self._config, data)
        self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist.

        The user file is applied first so the project file wins.
        """
        default_paths = [
            Path.home() / ".stablecoin" / "config.yaml",
            Path("stablecoin.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: manager.set("compliance.seize_bypasses_blacklist", True)
        """
        parts = path.split(".")
        obj = self._config

        for part in parts[:-1]:
            obj = getattr(obj, part, None)
            if obj is None:
                raise ConfigError(f"Invalid config path: {path}")

        attr = getattr(obj, parts[-1], None)
        if isinstance(attr, ConfigValue):
            attr.set(value)
        else:
            raise ConfigError(f"Invalid config path: {path}")

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: manager.get("storage.record_deposit")
        """
        obj: Any = self._config

        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)

        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def reset(self) -> None:
        """Drop runtime overrides and forget loaded files."""
        self._config = StablecoinConfig()
        self._config_paths = []

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except ValueError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors


def get_config() -> StablecoinConfig:
    """Get the current configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
