"""Exception hierarchy shared by the library and the CLI."""

from __future__ import annotations


class MonorepoSecretsError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigError(MonorepoSecretsError):
    """Raised when the secrets config file is missing or invalid."""


class CredentialsError(MonorepoSecretsError):
    """Raised when Google credentials cannot be loaded."""


class UnknownServiceError(MonorepoSecretsError):
    """Raised when a service name is not present in the config."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        listed = ", ".join(available + ["all"])
        super().__init__(f"Service '{name}' not found. Available services: {listed}")


class EnvFileError(MonorepoSecretsError):
    """Raised when a local environment file cannot be read."""


class EnvLoadError(MonorepoSecretsError):
    """Raised when a service env cannot be loaded into the process."""


class StoreError(MonorepoSecretsError):
    """Raised when the secret version store rejects a call."""

    def __init__(self, message: str, secret_id: str | None = None):
        self.secret_id = secret_id
        super().__init__(message)


class SecretNotFoundError(StoreError):
    """The secret (or the requested version) does not exist."""


class SecretExistsError(StoreError):
    """The secret already exists."""


class PermissionDeniedError(StoreError):
    """The caller is not allowed to perform the call."""


class TransientStoreError(StoreError):
    """The store is temporarily unavailable; the call may be retried."""


class EmptySecretError(StoreError):
    """The latest version of the secret carries no payload."""
