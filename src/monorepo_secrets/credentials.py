"""Google credential loading for the secret store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .exceptions import CredentialsError

logger = logging.getLogger("monorepo_secrets.credentials")


def load_credentials(service_account_path: str, override_sa: bool = False) -> Any:
    """Load credentials for a Secret Manager client.

    Nothing is written to the process environment; the caller passes
    the returned credentials to the store explicitly.

    Args:
        service_account_path: Service account JSON file from the config.
        override_sa: Skip the file and use Application Default
            Credentials (CI/CD runners, workload identity).

    Returns:
        A ``google.auth.credentials.Credentials`` instance.

    Raises:
        CredentialsError: The file is missing or cannot be parsed, or no
            default credentials are available.
    """
    import google.auth
    from google.auth.exceptions import DefaultCredentialsError
    from google.oauth2 import service_account

    if override_sa:
        try:
            credentials, _ = google.auth.default()
        except DefaultCredentialsError as exc:
            raise CredentialsError(f"No default credentials available: {exc}") from exc
        logger.info("Using Application Default Credentials")
        return credentials

    path = Path(service_account_path).expanduser()
    if not path.exists():
        raise CredentialsError(f"Service account file not found at {path}")

    try:
        credentials = service_account.Credentials.from_service_account_file(str(path))
    except (ValueError, OSError) as exc:
        raise CredentialsError(f"Invalid service account file {path}: {exc}") from exc
    logger.info("Loaded service account credentials from %s", path)
    return credentials
