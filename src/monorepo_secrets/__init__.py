"""
Monorepo Secrets — per-service env files in Google Cloud Secret Manager.

One secret per service per environment. Upload pushes a new version,
download pulls the latest one back, and every upload prunes old
versions under the configured retention policy.
"""

import os

__version__ = "1.0.1"
__author__ = "monorepo-secrets contributors"

CONFIG_PATH = os.environ.get("MSM_CONFIG", ".secrets-config")

from .cleanup import CleanupOrchestrator  # noqa: E402
from .config import ConfigManager  # noqa: E402
from .manager import SecretSyncManager  # noqa: E402
from .models import (  # noqa: E402
    CleanupOutcome,
    Environment,
    RetentionPolicy,
    SecretVersion,
    VersionState,
)
from .retention import evaluate  # noqa: E402

__all__ = [
    "CONFIG_PATH",
    "CleanupOrchestrator",
    "CleanupOutcome",
    "ConfigManager",
    "Environment",
    "RetentionPolicy",
    "SecretSyncManager",
    "SecretVersion",
    "VersionState",
    "evaluate",
]
