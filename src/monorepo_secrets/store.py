"""
Secret version stores -- where the env files live.

Each store knows how to list, add, read and destroy versions of a
named secret. The sync manager and the cleanup orchestrator receive
a store at construction time and never create one themselves.

Google: Cloud Secret Manager through the async gRPC client.
Memory: In-process store for tests and embedding.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

from google.api_core import exceptions as gexc

from .exceptions import (
    EmptySecretError,
    PermissionDeniedError,
    SecretExistsError,
    SecretNotFoundError,
    StoreError,
    TransientStoreError,
)
from .models import DestroyResult, Environment, SecretVersion, VersionState

if TYPE_CHECKING:
    from .config import ConfigManager

logger = logging.getLogger("monorepo_secrets.store")


class VersionStore(ABC):
    """Abstract secret version store."""

    @abstractmethod
    async def list_versions(self, secret_id: str) -> list[SecretVersion]:
        """List every version of a secret, destroyed ones included.

        Raises:
            SecretNotFoundError: The secret does not exist.
            PermissionDeniedError: The caller may not list versions.
            TransientStoreError: The store is temporarily unavailable.
        """

    @abstractmethod
    async def destroy_version(self, secret_id: str, version_id: str) -> DestroyResult:
        """Destroy one version. Store-side failures come back as a result."""

    @abstractmethod
    async def create_secret(self, secret_id: str) -> None:
        """Create an empty secret."""

    @abstractmethod
    async def add_version(self, secret_id: str, payload: bytes) -> str:
        """Add a version and return its id.

        Raises:
            SecretNotFoundError: The secret does not exist yet.
        """

    @abstractmethod
    async def access_latest(self, secret_id: str) -> bytes:
        """Return the payload of the latest version."""

    async def close(self) -> None:
        """Release client resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


# Checked in order; the first matching Google error class wins.
_ERROR_MAP: tuple[tuple[Any, type[StoreError]], ...] = (
    (gexc.NotFound, SecretNotFoundError),
    (gexc.AlreadyExists, SecretExistsError),
    ((gexc.PermissionDenied, gexc.Unauthenticated), PermissionDeniedError),
    (
        (
            gexc.ServiceUnavailable,
            gexc.DeadlineExceeded,
            gexc.ResourceExhausted,
            gexc.InternalServerError,
            gexc.RetryError,
        ),
        TransientStoreError,
    ),
)


@contextmanager
def _translate_errors(secret_id: str) -> Iterator[None]:
    try:
        yield
    except gexc.GoogleAPIError as exc:
        for google_error, store_error in _ERROR_MAP:
            if isinstance(exc, google_error):
                raise store_error(str(exc), secret_id=secret_id) from exc
        raise StoreError(str(exc), secret_id=secret_id) from exc


class GoogleSecretStore(VersionStore):
    """Google Cloud Secret Manager.

    The async client is created on first use with the credentials
    given here; pass ``client`` to inject a ready-made one.
    """

    def __init__(
        self,
        project: str,
        credentials: Any = None,
        client: Any = None,
    ):
        self.project = project
        self._credentials = credentials
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: "ConfigManager",
        environment: Environment,
        override_sa: bool = False,
    ) -> "GoogleSecretStore":
        """Build a store for one environment of a secrets config.

        Args:
            config: Loaded secrets config.
            environment: Which project and service account to use.
            override_sa: Use Application Default Credentials instead of
                the configured service account file (CI/CD).
        """
        from .credentials import load_credentials

        credentials = load_credentials(
            config.service_account_path(environment), override_sa=override_sa
        )
        return cls(config.project_id(environment), credentials=credentials)

    @property
    def name(self) -> str:
        return "google"

    def _get_client(self) -> Any:
        if self._client is None:
            from google.cloud.secretmanager import SecretManagerServiceAsyncClient

            self._client = SecretManagerServiceAsyncClient(
                credentials=self._credentials
            )
        return self._client

    def _secret_path(self, secret_id: str) -> str:
        return f"projects/{self.project}/secrets/{secret_id}"

    def _version_path(self, secret_id: str, version_id: str) -> str:
        return f"{self._secret_path(secret_id)}/versions/{version_id}"

    async def list_versions(self, secret_id: str) -> list[SecretVersion]:
        client = self._get_client()
        versions: list[SecretVersion] = []
        with _translate_errors(secret_id):
            pager = await client.list_secret_versions(
                request={"parent": self._secret_path(secret_id)}
            )
            async for item in pager:
                versions.append(
                    SecretVersion(
                        id=item.name.split("/")[-1],
                        created_at=item.create_time,
                        state=VersionState.parse(item.state),
                    )
                )
        return versions

    async def destroy_version(self, secret_id: str, version_id: str) -> DestroyResult:
        client = self._get_client()
        try:
            await client.destroy_secret_version(
                request={"name": self._version_path(secret_id, version_id)}
            )
        except gexc.GoogleAPIError as exc:
            return DestroyResult(version_id=version_id, ok=False, reason=str(exc))
        return DestroyResult(version_id=version_id, ok=True)

    async def create_secret(self, secret_id: str) -> None:
        client = self._get_client()
        with _translate_errors(secret_id):
            await client.create_secret(
                request={
                    "parent": f"projects/{self.project}",
                    "secret_id": secret_id,
                    "secret": {"replication": {"automatic": {}}},
                }
            )
        logger.info("Created secret %s in %s", secret_id, self.project)

    async def add_version(self, secret_id: str, payload: bytes) -> str:
        client = self._get_client()
        with _translate_errors(secret_id):
            response = await client.add_secret_version(
                request={
                    "parent": self._secret_path(secret_id),
                    "payload": {"data": payload},
                }
            )
        return response.name.split("/")[-1]

    async def access_latest(self, secret_id: str) -> bytes:
        client = self._get_client()
        with _translate_errors(secret_id):
            response = await client.access_secret_version(
                request={"name": self._version_path(secret_id, "latest")}
            )
        data = response.payload.data
        if not data:
            raise EmptySecretError(f"No data found for secret {secret_id}", secret_id=secret_id)
        return bytes(data)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.transport.close()
            self._client = None


class MemoryVersionStore(VersionStore):
    """Secret versions kept in a dict.

    Version ids count up from 1 per secret, like Secret Manager.
    ``latest`` resolves to the newest enabled version.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._versions: dict[str, list[SecretVersion]] = {}
        self._payloads: dict[tuple[str, str], bytes] = {}

    @property
    def name(self) -> str:
        return "memory"

    def _require(self, secret_id: str) -> list[SecretVersion]:
        if secret_id not in self._versions:
            raise SecretNotFoundError(
                f"Secret {secret_id} not found", secret_id=secret_id
            )
        return self._versions[secret_id]

    def seed(
        self,
        secret_id: str,
        created_at: datetime,
        payload: bytes = b"",
        state: VersionState = VersionState.ENABLED,
    ) -> str:
        """Add a version with an explicit timestamp and state."""
        versions = self._versions.setdefault(secret_id, [])
        version_id = str(len(versions) + 1)
        versions.append(SecretVersion(id=version_id, created_at=created_at, state=state))
        self._payloads[(secret_id, version_id)] = payload
        return version_id

    async def list_versions(self, secret_id: str) -> list[SecretVersion]:
        return list(self._require(secret_id))

    async def destroy_version(self, secret_id: str, version_id: str) -> DestroyResult:
        versions = self._versions.get(secret_id, [])
        for index, version in enumerate(versions):
            if version.id != version_id:
                continue
            if version.state is VersionState.DESTROYED:
                return DestroyResult(
                    version_id=version_id, ok=False, reason="already destroyed"
                )
            versions[index] = version.model_copy(update={"state": VersionState.DESTROYED})
            self._payloads.pop((secret_id, version_id), None)
            return DestroyResult(version_id=version_id, ok=True)
        return DestroyResult(version_id=version_id, ok=False, reason="version not found")

    async def create_secret(self, secret_id: str) -> None:
        if secret_id in self._versions:
            raise SecretExistsError(f"Secret {secret_id} already exists", secret_id=secret_id)
        self._versions[secret_id] = []

    async def add_version(self, secret_id: str, payload: bytes) -> str:
        self._require(secret_id)
        return self.seed(secret_id, self._clock(), payload)

    async def access_latest(self, secret_id: str) -> bytes:
        enabled = [v for v in self._require(secret_id) if v.state is VersionState.ENABLED]
        if not enabled:
            raise SecretNotFoundError(
                f"Secret {secret_id} has no enabled version", secret_id=secret_id
            )
        payload = self._payloads[(secret_id, enabled[-1].id)]
        if not payload:
            raise EmptySecretError(f"No data found for secret {secret_id}", secret_id=secret_id)
        return payload
