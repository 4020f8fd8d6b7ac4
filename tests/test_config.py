"""Tests for the secrets config manager."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from monorepo_secrets.config import (
    ConfigManager,
    env_dir_of,
    scaffold_env_files,
)
from monorepo_secrets.exceptions import ConfigError, UnknownServiceError
from monorepo_secrets.models import Environment, RetentionPolicy, ServiceConfig


def _write(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestLoad:
    """Loading and validating config files."""

    def test_valid_file(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        assert manager.service_names == ["api", "web"]
        assert manager.project_id(Environment.STAGING) == "acme-stg"
        assert manager.service_account_path(Environment.PRODUCTION) == (
            "firebase/prod/firebase-admin.json"
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="msm init"):
            ConfigManager(tmp_path / "nope")

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / ".secrets-config"
        path.write_text("{not: [valid")
        with pytest.raises(ConfigError, match="Failed to parse"):
            ConfigManager(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / ".secrets-config"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigManager(path)

    def test_missing_project_ids(self, tmp_path, config_data):
        del config_data["projectIds"]
        with pytest.raises(ConfigError, match="projectIds"):
            ConfigManager(_write(tmp_path / ".secrets-config", config_data))

    def test_negative_policy_rejected(self, tmp_path, config_data):
        """Invalid delete policy values fail at load time."""
        config_data["deletePolicy"]["maxVersions"] = -1
        with pytest.raises(ConfigError, match="maxVersions"):
            ConfigManager(_write(tmp_path / ".secrets-config", config_data))

    def test_yaml_file(self, tmp_path, config_data):
        path = tmp_path / "secrets.yaml"
        path.write_text(yaml.dump(config_data))
        assert ConfigManager(path).service_names == ["api", "web"]

    def test_env_var_default(self, tmp_path, config_data, monkeypatch):
        """Without a path, the package default location is used."""
        path = _write(tmp_path / "custom-config", config_data)
        monkeypatch.setattr("monorepo_secrets.config.CONFIG_PATH", str(path))
        assert ConfigManager().path == path


class TestQueries:
    """Service lookups and derived names."""

    def test_default_policy(self, tmp_path, config_data):
        del config_data["deletePolicy"]
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        assert manager.delete_policy == RetentionPolicy(
            max_versions=10, max_age_days=30, enabled=True
        )

    def test_configured_policy(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        assert manager.delete_policy.max_versions == 3
        assert manager.delete_policy.max_age_days == 7

    def test_names_and_paths(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        assert manager.secret_name("api") == "API_ENV_FILE"
        assert manager.env_path("web", Environment.PRODUCTION) == Path(
            ".environments/.web.prod.env"
        )

    def test_unknown_service(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        with pytest.raises(UnknownServiceError, match="api, web, all"):
            manager.get_service("worker")

    def test_resolve_all(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        assert [s.name for s in manager.resolve_services("all")] == ["api", "web"]
        assert [s.name for s in manager.resolve_services("web")] == ["web"]


class TestEdits:
    """Adding and removing services."""

    def test_add_service_persists(self, tmp_path, config_data):
        path = _write(tmp_path / ".secrets-config", config_data)
        manager = ConfigManager(path)
        manager.add_service(
            ServiceConfig(
                name="worker",
                env_path=".environments/.worker.{env}.env",
                target_path="services/worker/.env",
                secret_prefix="WORKER",
            )
        )

        saved = json.loads(path.read_text())
        assert saved["services"][-1] == {
            "name": "worker",
            "envPath": ".environments/.worker.{env}.env",
            "targetPath": "services/worker/.env",
            "secretPrefix": "WORKER",
        }
        assert saved["deletePolicy"] == {"maxVersions": 3, "maxAgeDays": 7, "enabled": True}

    def test_add_duplicate(self, tmp_path, config_data):
        manager = ConfigManager(_write(tmp_path / ".secrets-config", config_data))
        with pytest.raises(ConfigError, match="already exists"):
            manager.add_service(manager.get_service("api"))

    def test_remove_service(self, tmp_path, config_data):
        path = _write(tmp_path / ".secrets-config", config_data)
        removed = ConfigManager(path).remove_service("api")
        assert removed.name == "api"
        assert ConfigManager(path).service_names == ["web"]

    def test_generate_template(self, tmp_path):
        path = ConfigManager.generate_template(tmp_path / ".secrets-config")
        manager = ConfigManager(path)
        assert manager.services == []
        assert manager.delete_policy == RetentionPolicy()


class TestEnvFiles:
    """Env file scaffolding helpers."""

    def test_scaffold_creates_both(self, tmp_path):
        created = scaffold_env_files(tmp_path / "envs", "api", with_defaults=True)
        assert sorted(p.name for p in created) == [".api.prod.env", ".api.stg.env"]
        assert "APP_NAME=api" in (tmp_path / "envs" / ".api.stg.env").read_text()

    def test_scaffold_keeps_existing(self, tmp_path):
        env_dir = tmp_path / "envs"
        env_dir.mkdir()
        (env_dir / ".api.stg.env").write_text("ENV=mine\n")

        created = scaffold_env_files(env_dir, "api")

        assert [p.name for p in created] == [".api.prod.env"]
        assert (env_dir / ".api.stg.env").read_text() == "ENV=mine\n"

    def test_env_dir_of(self):
        service = ServiceConfig(
            name="api",
            env_path="config/envs/.api.{env}.env",
            target_path="t",
            secret_prefix="API",
        )
        assert env_dir_of(service) == "config/envs"
