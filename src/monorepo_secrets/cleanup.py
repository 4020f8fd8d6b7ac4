"""
Cleanup orchestrator -- applies a retention policy to stored secrets.

    cleanup_one   list once -> evaluate -> destroy each candidate
    cleanup_many  cleanup_one per secret, each failure contained

Listing is the only step allowed to fail the run: without a snapshot
there is nothing safe to destroy. Destroy failures are recorded in
the outcome and the remaining candidates are still attempted.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .exceptions import StoreError
from .models import CleanupOutcome, DestroyResult, RetentionPolicy
from .retention import plan
from .store import VersionStore

logger = logging.getLogger("monorepo_secrets.cleanup")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CleanupOrchestrator:
    """Destroys old secret versions through an injected store."""

    def __init__(
        self,
        store: VersionStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Version store to list and destroy through.
            clock: Returns the current time. Defaults to UTC now.
        """
        self.store = store
        self.clock = clock or _utcnow

    async def _destroy(self, secret_id: str, version_id: str) -> DestroyResult:
        # Any error from one destroy call becomes that version's result.
        try:
            return await self.store.destroy_version(secret_id, version_id)
        except Exception as exc:
            return DestroyResult(
                version_id=version_id, ok=False, reason=f"{type(exc).__name__}: {exc}"
            )

    async def cleanup_one(self, secret_id: str, policy: RetentionPolicy) -> CleanupOutcome:
        """Apply a retention policy to one secret.

        Args:
            secret_id: Secret to clean up.
            policy: Retention policy to apply.

        Returns:
            CleanupOutcome describing every destroy attempt.

        Raises:
            StoreError: Listing the versions failed. No version was
                destroyed.
        """
        if not policy.enabled:
            logger.debug("Cleanup disabled for %s", secret_id)
            return CleanupOutcome(secret_id=secret_id, skipped=True)

        versions = await self.store.list_versions(secret_id)
        decision = plan(versions, policy, self.clock())
        outcome = CleanupOutcome(
            secret_id=secret_id,
            evaluated=len(decision.live),
            marked=[v.id for v in decision.destroy],
            floor_applied=decision.floor_applied,
        )
        if decision.floor_applied:
            logger.warning(
                "Policy for %s would destroy all %d versions; kept the newest",
                secret_id,
                len(decision.live),
            )
        if not decision.destroy:
            return outcome

        logger.info(
            "Cleaning up %d old version(s) of %s", len(decision.destroy), secret_id
        )
        for version in decision.destroy:
            result = await self._destroy(secret_id, version.id)
            outcome.results.append(result)
            if result.ok:
                logger.info("Destroyed version %s of %s", version.id, secret_id)
            else:
                logger.warning(
                    "Could not destroy version %s of %s: %s",
                    version.id,
                    secret_id,
                    result.reason,
                )
        return outcome

    async def cleanup_many(
        self,
        secret_ids: Sequence[str],
        policy: RetentionPolicy,
        concurrency: int = 4,
    ) -> list[CleanupOutcome]:
        """Apply a retention policy to several secrets independently.

        A secret whose cleanup raises, for any reason, gets an outcome
        with ``error`` set; the other secrets are still cleaned up.

        Args:
            secret_ids: Secrets to clean up.
            policy: Retention policy to apply to each.
            concurrency: Maximum number of secrets processed at once.

        Returns:
            One outcome per secret, in input order.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _contained(secret_id: str) -> CleanupOutcome:
            async with semaphore:
                try:
                    return await self.cleanup_one(secret_id, policy)
                except StoreError as exc:
                    error = str(exc)
                except Exception as exc:
                    error = f"{type(exc).__name__}: {exc}"
                logger.warning("Could not clean up versions for %s: %s", secret_id, error)
                return CleanupOutcome(secret_id=secret_id, error=error)

        return list(await asyncio.gather(*(_contained(s) for s in secret_ids)))
