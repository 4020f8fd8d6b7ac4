"""
Secrets config -- which services exist and where their secrets live.

The config file (``.secrets-config`` by default) is JSON. YAML is
accepted too since it parses through ``yaml.safe_load``; files whose
name ends in ``.yaml``/``.yml`` are also written back as YAML.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from . import CONFIG_PATH
from .exceptions import ConfigError, UnknownServiceError
from .models import (
    Environment,
    EnvironmentPair,
    RetentionPolicy,
    SecretsConfig,
    ServiceConfig,
)

logger = logging.getLogger("monorepo_secrets.config")

DEFAULT_ENV_DIR = ".environments"

STAGING_PLACEHOLDER = "# Add your staging environment variables here\n"
PRODUCTION_PLACEHOLDER = "# Add your production environment variables here\n"


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def env_file_pattern(env_dir: str, service_name: str) -> str:
    """Env path template for a service inside the environments dir."""
    return f"{env_dir}/.{service_name}.{{env}}.env"


def env_dir_of(service: ServiceConfig) -> str:
    """Recover the environments dir from a service's env path template."""
    marker = f"/.{service.name}.{{env}}.env"
    if service.env_path.endswith(marker):
        return service.env_path[: -len(marker)]
    return DEFAULT_ENV_DIR


def scaffold_env_files(
    env_dir: Union[str, Path],
    service_name: str,
    with_defaults: bool = False,
) -> list[Path]:
    """Create placeholder staging/production env files if missing.

    Args:
        env_dir: Environments directory.
        service_name: Service the files belong to.
        with_defaults: Seed ``NODE_ENV`` and ``APP_NAME`` entries.

    Returns:
        The files that were created.
    """
    env_dir = Path(env_dir)
    env_dir.mkdir(parents=True, exist_ok=True)

    created = []
    for environment, header, node_env in (
        (Environment.STAGING, STAGING_PLACEHOLDER, "staging"),
        (Environment.PRODUCTION, PRODUCTION_PLACEHOLDER, "production"),
    ):
        path = env_dir / f".{service_name}.{environment.suffix}.env"
        if path.exists():
            continue
        body = header
        if with_defaults:
            body += f"NODE_ENV={node_env}\nAPP_NAME={service_name}\n"
        path.write_text(body, encoding="utf-8")
        created.append(path)
    return created


class ConfigManager:
    """Loads, validates, queries and edits the secrets config file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """Load and validate the config.

        Args:
            path: Config file. Defaults to ``$MSM_CONFIG`` or
                ``.secrets-config``.

        Raises:
            ConfigError: The file is missing, unparsable or invalid.
        """
        self.path = Path(path or CONFIG_PATH)
        self.config = self._load()

    def _load(self) -> SecretsConfig:
        if not self.path.exists():
            raise ConfigError(
                f"Configuration file not found at {self.path}. "
                "Run 'msm init' to generate one."
            )
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Failed to parse configuration file: {exc}. "
                "Run 'msm init' to regenerate it."
            ) from exc
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a mapping")
        return self.validate(data)

    @staticmethod
    def validate(data: dict) -> SecretsConfig:
        """Validate raw config data.

        Raises:
            ConfigError: Naming the first invalid field.
        """
        try:
            return SecretsConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid configuration: {_format_validation_error(exc)}"
            ) from exc

    @property
    def services(self) -> list[ServiceConfig]:
        return list(self.config.services)

    @property
    def service_names(self) -> list[str]:
        return [s.name for s in self.config.services]

    @property
    def delete_policy(self) -> RetentionPolicy:
        """Configured retention policy, or the default 10 versions / 30 days."""
        return self.config.delete_policy or RetentionPolicy()

    def get_service(self, name: str) -> ServiceConfig:
        """Look up a service by name.

        Raises:
            UnknownServiceError: No service with that name.
        """
        for service in self.config.services:
            if service.name == name:
                return service
        raise UnknownServiceError(name, self.service_names)

    def resolve_services(self, name: str) -> list[ServiceConfig]:
        """Expand ``all`` to every service, or look up a single one."""
        if name == "all":
            return self.services
        return [self.get_service(name)]

    def project_id(self, environment: Environment) -> str:
        return self.config.project_ids.for_environment(environment)

    def service_account_path(self, environment: Environment) -> str:
        return self.config.service_account_paths.for_environment(environment)

    def env_path(self, name: str, environment: Environment) -> Path:
        return Path(self.get_service(name).env_path_for(environment))

    def secret_name(self, name: str) -> str:
        return self.get_service(name).secret_name

    def add_service(self, service: ServiceConfig) -> None:
        """Append a service and save.

        Raises:
            ConfigError: A service with that name already exists.
        """
        if service.name in self.service_names:
            raise ConfigError(f"Service '{service.name}' already exists")
        self.config.services.append(service)
        self.save()
        logger.info("Added service %s", service.name)

    def remove_service(self, name: str) -> ServiceConfig:
        """Remove a service and save. Env files are left in place."""
        service = self.get_service(name)
        self.config.services = [s for s in self.config.services if s.name != name]
        self.save()
        logger.info("Removed service %s", name)
        return service

    def save(self) -> None:
        """Persist the config to disk."""
        write_config(self.path, self.config)

    @classmethod
    def generate_template(cls, path: Optional[Union[str, Path]] = None) -> Path:
        """Write a starter config with placeholder projects and no services."""
        target = Path(path or CONFIG_PATH)
        template = SecretsConfig(
            service_account_paths=EnvironmentPair(
                staging="firebase/staging/firebase-admin.json",
                production="firebase/production/firebase-admin.json",
            ),
            project_ids=EnvironmentPair(
                staging="your-staging-project-id",
                production="your-production-project-id",
            ),
            services=[],
            delete_policy=RetentionPolicy(),
        )
        write_config(target, template)
        return target


def write_config(path: Path, config: SecretsConfig) -> None:
    """Serialize a config with its file field names."""
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    if path.suffix in (".yaml", ".yml"):
        text = yaml.dump(data, default_flow_style=False, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"
    path.write_text(text, encoding="utf-8")
