"""Shared test fixtures for monorepo_secrets."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for retention decisions."""
    return NOW


@pytest.fixture
def memory_store():
    """Provide an empty in-memory version store with a fixed clock."""
    from monorepo_secrets.store import MemoryVersionStore

    return MemoryVersionStore(clock=lambda: NOW)


@pytest.fixture
def config_data() -> dict:
    """Raw config with two services and a 3 version / 7 day policy."""
    return {
        "serviceAccountPaths": {
            "staging": "firebase/stg/firebase-admin.json",
            "production": "firebase/prod/firebase-admin.json",
        },
        "projectIds": {"staging": "acme-stg", "production": "acme-prod"},
        "services": [
            {
                "name": "api",
                "envPath": ".environments/.api.{env}.env",
                "targetPath": "services/api/.env",
                "secretPrefix": "API",
            },
            {
                "name": "web",
                "envPath": ".environments/.web.{env}.env",
                "targetPath": "services/web/.env",
                "secretPrefix": "WEB",
            },
        ],
        "deletePolicy": {"maxVersions": 3, "maxAgeDays": 7, "enabled": True},
    }


@pytest.fixture
def repo(tmp_path: Path, config_data: dict, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provide a monorepo checkout with a config and staging env files.

    The working directory is switched to the checkout so the relative
    paths in the config resolve against it.
    """
    (tmp_path / ".secrets-config").write_text(json.dumps(config_data, indent=2))
    env_dir = tmp_path / ".environments"
    env_dir.mkdir()
    (env_dir / ".api.stg.env").write_text("ENV=staging\nAPI_KEY=abc\n")
    (env_dir / ".web.stg.env").write_text("ENV=staging\nWEB_URL=https://stg\n")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def seed_history(store, secret_id: str, ages_in_days: list[int]) -> list[str]:
    """Seed one version per age (oldest first), relative to NOW."""
    ids = []
    for age in sorted(ages_in_days, reverse=True):
        ids.append(store.seed(secret_id, NOW - timedelta(days=age), f"v-{age}".encode()))
    return ids


@pytest.fixture
def seed():
    """Expose ``seed_history`` to tests."""
    return seed_history
