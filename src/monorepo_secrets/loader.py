"""
Runtime env loading for services.

A service calls ``load_service_env`` at startup. An existing env file
wins; otherwise the latest secret version is fetched, written to disk,
and loaded into ``os.environ``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .exceptions import EnvLoadError, StoreError
from .models import ENV_FILE_SUFFIX
from .store import GoogleSecretStore, VersionStore

logger = logging.getLogger("monorepo_secrets.loader")

# Every service env file is expected to define this.
MARKER_VAR = "ENV"


async def load_service_env(
    service_name: str,
    project_id: str,
    env_path: Optional[str] = None,
    secret_name: Optional[str] = None,
    required_env_vars: Optional[Sequence[str]] = None,
    store: Optional[VersionStore] = None,
) -> Path:
    """Make a service's environment available in ``os.environ``.

    Args:
        service_name: Service name, used for the default secret name.
        project_id: Google project holding the secret.
        env_path: Env file location. Defaults to ``./.env``.
        secret_name: Secret to fetch. Defaults to
            ``<SERVICE_NAME>_ENV_FILE``.
        required_env_vars: Variables that must be set afterwards.
        store: Version store. Defaults to Google Secret Manager with
            Application Default Credentials.

    Returns:
        Path of the env file that was loaded.

    Raises:
        EnvLoadError: The secret could not be fetched, or required
            variables are missing after loading.
    """
    path = Path(env_path) if env_path else Path.cwd() / ".env"

    if path.exists():
        logger.info("Using existing env file for %s: %s", service_name, path)
    else:
        resolved = secret_name or f"{service_name.upper()}{ENV_FILE_SUFFIX}"
        logger.info("Fetching %s for %s from project %s", resolved, service_name, project_id)
        own_store = store is None
        active = store or GoogleSecretStore(project_id)
        try:
            payload = await active.access_latest(resolved)
        except StoreError as exc:
            raise EnvLoadError(
                f"Failed to initialize config for {service_name} from Secret Manager: {exc}"
            ) from exc
        finally:
            if own_store:
                await active.close()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)

    load_dotenv(path)

    if not os.environ.get(MARKER_VAR):
        raise EnvLoadError(f"{MARKER_VAR} is not set after loading {path}")

    missing = [name for name in (required_env_vars or ()) if not os.environ.get(name)]
    if missing:
        raise EnvLoadError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
    return path
