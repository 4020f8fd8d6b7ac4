"""
Sync manager -- moves env files between the checkout and the store.

This is the command center. It resolves service names to secrets,
reads and writes env files, and hands every successful upload to the
cleanup orchestrator.

    msm upload api --stg    ->  read .api.stg.env -> add version -> cleanup
    msm download api --stg  ->  latest version -> .api.stg.env
    msm peek api --stg      ->  latest version -> terminal
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .cleanup import CleanupOrchestrator
from .config import ConfigManager
from .exceptions import EnvFileError, SecretNotFoundError, StoreError
from .models import CleanupOutcome, Environment, PeekResult, ServiceConfig, UploadResult
from .store import GoogleSecretStore, VersionStore

logger = logging.getLogger("monorepo_secrets.manager")


class SecretSyncManager:
    """Upload, download, peek and clean up service env secrets.

    Every operation takes a service name or ``all``.
    """

    def __init__(
        self,
        config: ConfigManager,
        environment: Environment,
        store: VersionStore,
        orchestrator: Optional[CleanupOrchestrator] = None,
    ):
        """Initialize the manager.

        Args:
            config: Loaded secrets config.
            environment: Environment whose files and project are used.
            store: Version store for that environment's project.
            orchestrator: Cleanup orchestrator. Defaults to one over
                ``store``.
        """
        self.config = config
        self.environment = environment
        self.store = store
        self.orchestrator = orchestrator or CleanupOrchestrator(store)

    @classmethod
    def for_environment(
        cls,
        config: ConfigManager,
        environment: Environment,
        override_sa: bool = False,
    ) -> "SecretSyncManager":
        """Build a manager backed by Google Secret Manager."""
        store = GoogleSecretStore.from_config(config, environment, override_sa=override_sa)
        return cls(config, environment, store)

    async def close(self) -> None:
        await self.store.close()

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(self, service_name: str) -> list[UploadResult]:
        """Upload env files as new secret versions.

        Services are uploaded one after another; the first failing
        upload stops the run.

        Raises:
            EnvFileError: A local env file is missing.
            StoreError: The store rejected the upload.
        """
        results = []
        for service in self.config.resolve_services(service_name):
            results.append(await self._upload_one(service))
        return results

    async def _upload_one(self, service: ServiceConfig) -> UploadResult:
        env_path = Path(service.env_path_for(self.environment))
        if not env_path.is_file():
            raise EnvFileError(f"Environment file not found at {env_path}")
        payload = env_path.read_bytes()
        secret_id = service.secret_name

        try:
            version_id = await self.store.add_version(secret_id, payload)
        except SecretNotFoundError:
            await self.store.create_secret(secret_id)
            version_id = await self.store.add_version(secret_id, payload)
            logger.info("Created new secret %s with version %s", secret_id, version_id)
            return UploadResult(
                service=service.name,
                secret_id=secret_id,
                version_id=version_id,
                created=True,
            )

        logger.info("Updated secret %s with new version %s", secret_id, version_id)
        result = UploadResult(service=service.name, secret_id=secret_id, version_id=version_id)

        # The upload has succeeded at this point; cleanup can only annotate it.
        try:
            result.cleanup = await self.orchestrator.cleanup_one(
                secret_id, self.config.delete_policy
            )
        except Exception as exc:
            logger.warning("Could not clean up versions for %s: %s", secret_id, exc)
            result.cleanup_error = str(exc)
        return result

    # ------------------------------------------------------------------
    # Download / set / peek
    # ------------------------------------------------------------------

    async def _fetch(self, service: ServiceConfig) -> str:
        payload = await self.store.access_latest(service.secret_name)
        return payload.decode("utf-8")

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def download(self, service_name: str) -> list[Path]:
        """Write the latest secret version to each service's env file.

        Returns:
            Paths written.
        """
        written = []
        for service in self.config.resolve_services(service_name):
            path = Path(service.env_path_for(self.environment))
            self._write(path, await self._fetch(service))
            logger.info("Downloaded %s to %s", service.secret_name, path)
            written.append(path)
        return written

    async def set_env(self, service_name: str) -> list[Path]:
        """Write the latest secret version to each service's target path.

        Returns:
            Paths written.
        """
        written = []
        for service in self.config.resolve_services(service_name):
            path = Path(service.target_path)
            self._write(path, await self._fetch(service))
            logger.info("Set %s into %s", service.secret_name, path)
            written.append(path)
        return written

    async def peek(self, service_name: str) -> list[PeekResult]:
        """Read the latest env file content per service.

        A service without a secret has neither content nor error. Other
        store errors are recorded on that service's result and the
        remaining services are still read.
        """
        results = []
        for service in self.config.resolve_services(service_name):
            result = PeekResult(service=service.name)
            try:
                result.content = await self._fetch(service)
            except SecretNotFoundError:
                pass
            except StoreError as exc:
                logger.warning("Could not read %s: %s", service.secret_name, exc)
                result.error = str(exc)
            results.append(result)
        return results

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup(self, service_name: str) -> list[CleanupOutcome]:
        """Apply the configured retention policy on demand.

        A single service propagates listing failures; ``all`` records
        them per secret and carries on.
        """
        policy = self.config.delete_policy
        if service_name == "all":
            secret_ids = [s.secret_name for s in self.config.services]
            return await self.orchestrator.cleanup_many(secret_ids, policy)
        service = self.config.get_service(service_name)
        return [await self.orchestrator.cleanup_one(service.secret_name, policy)]
