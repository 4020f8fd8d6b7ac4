"""
Data models -- environments, secret versions, retention policy,
service configuration, and cleanup outcomes.

The config models keep the camelCase field names of the
``.secrets-config`` file so existing files load unchanged.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
)

ENV_FILE_SUFFIX = "_ENV_FILE"


class Environment(str, Enum):
    """Deployment environment a secret belongs to."""

    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def suffix(self) -> str:
        """Short name used in env file paths (``stg`` / ``prod``)."""
        return "stg" if self is Environment.STAGING else "prod"


class VersionState(str, Enum):
    """Lifecycle state of a stored secret version."""

    ENABLED = "ENABLED"
    DISABLED = "DISABLED"
    DESTROYED = "DESTROYED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> "VersionState":
        """Map a store-reported state name onto a known state.

        Anything unrecognized (including ``STATE_UNSPECIFIED``)
        becomes ``UNKNOWN``.
        """
        name = getattr(value, "name", value)
        try:
            return cls(str(name).upper())
        except ValueError:
            return cls.UNKNOWN


class SecretVersion(BaseModel):
    """One immutable payload revision of a named secret."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    state: VersionState = VersionState.ENABLED

    @property
    def is_live(self) -> bool:
        """Only enabled and disabled versions take part in retention."""
        return self.state in (VersionState.ENABLED, VersionState.DISABLED)


class RetentionPolicy(BaseModel):
    """Count- and age-based retention rules for secret versions.

    A limit of 0 switches that rule off. Values are validated
    strictly: negative numbers, floats, bools and strings are
    rejected when the policy is built.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_versions: StrictInt = Field(default=10, ge=0, alias="maxVersions")
    max_age_days: StrictInt = Field(default=30, ge=0, alias="maxAgeDays")
    enabled: StrictBool = True


class DestroyResult(BaseModel):
    """Result of a single destroy request."""

    version_id: str
    ok: bool
    reason: Optional[str] = None


class CleanupOutcome(BaseModel):
    """Per-secret summary of one cleanup run."""

    secret_id: str
    evaluated: int = 0
    marked: list[str] = Field(default_factory=list)
    results: list[DestroyResult] = Field(default_factory=list)
    floor_applied: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def destroyed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def failures(self) -> list[DestroyResult]:
        return [r for r in self.results if not r.ok]


class ServiceConfig(BaseModel):
    """One service of the monorepo and where its env files live."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    env_path: str = Field(alias="envPath", min_length=1)
    target_path: str = Field(alias="targetPath", min_length=1)
    secret_prefix: str = Field(alias="secretPrefix", min_length=1)

    @property
    def secret_name(self) -> str:
        """Name of the secret holding this service's env file."""
        return f"{self.secret_prefix}{ENV_FILE_SUFFIX}"

    def env_path_for(self, environment: Environment) -> str:
        """Resolve the ``{env}`` placeholder for an environment."""
        return self.env_path.replace("{env}", environment.suffix)


class EnvironmentPair(BaseModel):
    """A value per environment."""

    staging: str = Field(min_length=1)
    production: str = Field(min_length=1)

    def for_environment(self, environment: Environment) -> str:
        return getattr(self, environment.value)


class SecretsConfig(BaseModel):
    """Complete contents of the ``.secrets-config`` file."""

    model_config = ConfigDict(populate_by_name=True)

    service_account_paths: EnvironmentPair = Field(alias="serviceAccountPaths")
    project_ids: EnvironmentPair = Field(alias="projectIds")
    services: list[ServiceConfig] = Field(default_factory=list)
    delete_policy: Optional[RetentionPolicy] = Field(
        default=None, alias="deletePolicy"
    )

    @field_validator("services")
    @classmethod
    def _unique_names(cls, services: list[ServiceConfig]) -> list[ServiceConfig]:
        seen: set[str] = set()
        for service in services:
            if service.name in seen:
                raise ValueError(f"duplicate service name '{service.name}'")
            seen.add(service.name)
        return services


class UploadResult(BaseModel):
    """What a single service upload did."""

    service: str
    secret_id: str
    version_id: str
    created: bool = False
    cleanup: Optional[CleanupOutcome] = None
    cleanup_error: Optional[str] = None


class PeekResult(BaseModel):
    """Latest env file content of one service, or why it is missing."""

    service: str
    content: Optional[str] = None
    error: Optional[str] = None
