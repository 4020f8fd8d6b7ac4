"""Tests for the sync manager -- upload, download, peek, cleanup."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from monorepo_secrets.cleanup import CleanupOrchestrator
from monorepo_secrets.config import ConfigManager
from monorepo_secrets.exceptions import (
    EnvFileError,
    PermissionDeniedError,
    SecretNotFoundError,
    UnknownServiceError,
)
from monorepo_secrets.manager import SecretSyncManager
from monorepo_secrets.models import Environment, VersionState

from conftest import NOW


@pytest.fixture
def config(repo: Path) -> ConfigManager:
    return ConfigManager(repo / ".secrets-config")


@pytest.fixture
def manager(config, memory_store) -> SecretSyncManager:
    orchestrator = CleanupOrchestrator(memory_store, clock=lambda: NOW)
    return SecretSyncManager(config, Environment.STAGING, memory_store, orchestrator)


class TestUpload:
    """Uploading env files."""

    @pytest.mark.asyncio
    async def test_creates_missing_secret(self, manager, memory_store):
        """The first upload creates the secret with one version."""
        [result] = await manager.upload("api")

        assert result.created is True
        assert result.secret_id == "API_ENV_FILE"
        assert result.version_id == "1"
        assert result.cleanup is None
        assert await memory_store.access_latest("API_ENV_FILE") == b"ENV=staging\nAPI_KEY=abc\n"

    @pytest.mark.asyncio
    async def test_existing_secret_triggers_cleanup(self, manager, memory_store, seed):
        """Uploading to an existing secret prunes per the configured policy."""
        seed(memory_store, "API_ENV_FILE", [1, 2, 3, 20])

        [result] = await manager.upload("api")

        assert result.created is False
        assert result.version_id == "5"
        assert result.cleanup is not None
        assert result.cleanup.evaluated == 5
        assert sorted(result.cleanup.marked) == ["1", "2"]
        assert result.cleanup.destroyed == 2
        latest = await memory_store.access_latest("API_ENV_FILE")
        assert latest == b"ENV=staging\nAPI_KEY=abc\n"

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_fail_upload(self, config, memory_store, seed):
        """A broken post-upload cleanup is recorded, not raised."""
        seed(memory_store, "API_ENV_FILE", [1, 2])
        orchestrator = MagicMock()
        orchestrator.cleanup_one = AsyncMock(side_effect=PermissionDeniedError("denied"))
        manager = SecretSyncManager(config, Environment.STAGING, memory_store, orchestrator)

        [result] = await manager.upload("api")

        assert result.version_id == "3"
        assert result.cleanup is None
        assert result.cleanup_error == "denied"

    @pytest.mark.asyncio
    async def test_partial_cleanup_still_succeeds(self, config, memory_store, seed):
        """Destroy failures during post-upload cleanup only show in the outcome."""
        seed(memory_store, "API_ENV_FILE", [10, 20, 30, 40])

        async def _refuse(secret_id, version_id):
            from monorepo_secrets.models import DestroyResult

            return DestroyResult(version_id=version_id, ok=False, reason="quota")

        memory_store.destroy_version = _refuse
        manager = SecretSyncManager(
            config,
            Environment.STAGING,
            memory_store,
            CleanupOrchestrator(memory_store, clock=lambda: NOW),
        )

        [result] = await manager.upload("api")

        assert result.cleanup.failed == 4
        assert result.cleanup_error is None

    @pytest.mark.asyncio
    async def test_missing_env_file(self, manager, repo):
        (repo / ".environments" / ".api.stg.env").unlink()
        with pytest.raises(EnvFileError, match=".api.stg.env"):
            await manager.upload("api")

    @pytest.mark.asyncio
    async def test_upload_all(self, manager):
        results = await manager.upload("all")
        assert [r.secret_id for r in results] == ["API_ENV_FILE", "WEB_ENV_FILE"]

    @pytest.mark.asyncio
    async def test_unknown_service(self, manager):
        with pytest.raises(UnknownServiceError):
            await manager.upload("worker")


class TestDownload:
    """Downloading, setting and peeking env files."""

    @pytest.mark.asyncio
    async def test_download_overwrites_env_file(self, manager, memory_store, repo):
        memory_store.seed("API_ENV_FILE", NOW, b"ENV=staging\nFROM=store\n")

        written = await manager.download("api")

        assert written == [Path(".environments/.api.stg.env")]
        assert (repo / ".environments" / ".api.stg.env").read_text() == (
            "ENV=staging\nFROM=store\n"
        )

    @pytest.mark.asyncio
    async def test_set_env_creates_target_dirs(self, manager, memory_store, repo):
        memory_store.seed("WEB_ENV_FILE", NOW, b"ENV=staging\n")

        await manager.set_env("web")

        assert (repo / "services" / "web" / ".env").read_text() == "ENV=staging\n"

    @pytest.mark.asyncio
    async def test_download_missing_secret(self, manager):
        with pytest.raises(SecretNotFoundError):
            await manager.download("api")

    @pytest.mark.asyncio
    async def test_peek_missing_is_none(self, manager, memory_store):
        memory_store.seed("WEB_ENV_FILE", NOW, b"ENV=staging\n")

        results = await manager.peek("all")

        assert [(r.service, r.content, r.error) for r in results] == [
            ("api", None, None),
            ("web", "ENV=staging\n", None),
        ]

    @pytest.mark.asyncio
    async def test_peek_all_continues_past_empty_secret(self, manager, memory_store):
        """An empty secret is reported for its service and the rest are read."""
        memory_store.seed("API_ENV_FILE", NOW, b"")
        memory_store.seed("WEB_ENV_FILE", NOW, b"ENV=staging\n")

        api, web = await manager.peek("all")

        assert api.content is None
        assert "No data found" in api.error
        assert web.content == "ENV=staging\n"

    @pytest.mark.asyncio
    async def test_peek_all_continues_past_permission_error(self, manager, memory_store):
        memory_store.seed("WEB_ENV_FILE", NOW, b"ENV=staging\n")
        read = memory_store.access_latest

        async def _deny_api(secret_id):
            if secret_id == "API_ENV_FILE":
                raise PermissionDeniedError("denied", secret_id=secret_id)
            return await read(secret_id)

        memory_store.access_latest = _deny_api

        api, web = await manager.peek("all")

        assert api.error == "denied"
        assert web.error is None
        assert web.content == "ENV=staging\n"


class TestManualCleanup:
    """On-demand cleanup through the manager."""

    @pytest.mark.asyncio
    async def test_single_service_propagates_listing_error(self, manager):
        """A missing secret fails a single-service cleanup."""
        with pytest.raises(SecretNotFoundError):
            await manager.cleanup("api")

    @pytest.mark.asyncio
    async def test_all_contains_errors(self, manager, memory_store, seed):
        seed(memory_store, "WEB_ENV_FILE", [0, 1, 2, 3, 4])

        outcomes = await manager.cleanup("all")

        assert [o.secret_id for o in outcomes] == ["API_ENV_FILE", "WEB_ENV_FILE"]
        assert outcomes[0].error is not None
        assert outcomes[1].destroyed == 2
        states = [v.state for v in await memory_store.list_versions("WEB_ENV_FILE")]
        assert states.count(VersionState.DESTROYED) == 2
