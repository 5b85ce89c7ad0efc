"""
Configuration tests: defaults, environment binding, YAML files, schema checks.

Run with: pytest tests/test_config.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import pytest
import yaml

from stablecoin.config import (
    ConfigError,
    ConfigValue,
    get_config,
    get_config_manager,
    validate_config_document,
)


class TestConfigValue:
    """Tests for single configuration values."""

    def test_default_and_override(self):
        value = ConfigValue(default=3)
        assert value.get() == 3
        value.set(5)
        assert value.get() == 5
        value.reset()
        assert value.get() == 3

    def test_environment_wins(self, monkeypatch):
        value = ConfigValue(default=False, env_var="STABLECOIN_TEST_FLAG")
        value.set(False)
        monkeypatch.setenv("STABLECOIN_TEST_FLAG", "yes")
        assert value.get() is True

    def test_int_coercion(self, monkeypatch):
        value = ConfigValue(default=1, env_var="STABLECOIN_TEST_INT")
        monkeypatch.setenv("STABLECOIN_TEST_INT", "250")
        assert value.get() == 250

    def test_validator_rejects(self):
        value = ConfigValue(default=1, validator=lambda x: x > 0)
        with pytest.raises(ConfigError):
            value.set(0)
        assert value.get() == 1

    def test_change_callback(self):
        seen = []
        value = ConfigValue(default="info")
        value.on_change(lambda old, new: seen.append((old, new)))
        value.set("debug")
        assert seen == [(None, "debug")]


class TestConfigManager:
    """Tests for the configuration singleton."""

    def test_defaults(self):
        config = get_config()
        assert config.compliance.seize_bypasses_blacklist.get() is False
        assert config.compliance.log_malformed_registry.get() is True
        assert config.storage.record_deposit.get() == 1
        assert config.observability.audit_enabled.get() is True

    def test_singleton(self):
        assert get_config_manager() is get_config_manager()

    def test_set_and_get_by_path(self):
        manager = get_config_manager()
        manager.set("compliance.seize_bypasses_blacklist", True)
        assert manager.get("compliance.seize_bypasses_blacklist") is True
        assert get_config().compliance.seize_bypasses_blacklist.get() is True

    @pytest.mark.parametrize("path", ["compliance.nope", "nope.value", "compliance"])
    def test_invalid_path(self, path):
        with pytest.raises(ConfigError):
            get_config_manager().set(path, 1)

    def test_invalid_get_path(self):
        with pytest.raises(ConfigError):
            get_config_manager().get("storage.nothing")

    def test_reset_discards_overrides(self):
        manager = get_config_manager()
        manager.set("storage.record_deposit", 9)
        manager.reset()
        assert manager.get("storage.record_deposit") == 1

    def test_validate_reports_bad_environment(self, monkeypatch):
        monkeypatch.setenv("STABLECOIN_RECORD_DEPOSIT", "0")
        errors = get_config_manager().validate()
        assert any("record_deposit" in e for e in errors)

    def test_to_yaml_round_trips(self):
        manager = get_config_manager()
        manager.set("observability.log_format", "text")
        data = yaml.safe_load(manager.config.to_yaml())
        assert data["observability"]["log_format"] == "text"
        assert validate_config_document(data) == []


class TestConfigFiles:
    """Tests for YAML configuration files."""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "stablecoin.yaml"
        path.write_text(yaml.safe_dump({
            "compliance": {"seize_bypasses_blacklist": True},
            "storage": {"record_deposit": 5},
        }))

        manager = get_config_manager()
        manager.load_from_file(path)
        assert manager.get("compliance.seize_bypasses_blacklist") is True
        assert manager.get("storage.record_deposit") == 5
        assert manager.get("observability.audit_enabled") is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(tmp_path / "absent.yaml")

    def test_empty_file_is_noop(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        get_config_manager().load_from_file(path)
        assert get_config().storage.record_deposit.get() == 1

    def test_project_file_wins_over_user_file(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        (home / ".stablecoin").mkdir(parents=True)
        (home / ".stablecoin" / "config.yaml").write_text(yaml.safe_dump({
            "storage": {"record_deposit": 3},
            "observability": {"log_format": "text"},
        }))
        project = tmp_path / "project"
        project.mkdir()
        (project / "stablecoin.yaml").write_text(yaml.safe_dump({"storage": {"record_deposit": 8}}))

        monkeypatch.setenv("HOME", str(home))
        monkeypatch.chdir(project)
        manager = get_config_manager()
        manager.load_defaults()

        assert manager.get("storage.record_deposit") == 8
        assert manager.get("observability.log_format") == "text"

    @pytest.mark.parametrize("document", [
        {"compliance": {"seize_bypasses_blacklist": "sometimes"}},
        {"storage": {"record_deposit": 0}},
        {"observability": {"log_format": "xml"}},
        {"ledger": {"url": "x"}},
    ])
    def test_schema_rejects(self, tmp_path, document):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(document))
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(path)
        assert get_config().storage.record_deposit.get() == 1
