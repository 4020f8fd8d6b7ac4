"""
Retention policy evaluation -- which secret versions may be destroyed.

Pure functions, no I/O. Given one snapshot of a secret's versions,
a policy and a point in time, work out the destroy set:

    live set   = ENABLED + DISABLED versions, newest first
    count rule = every live version past the first ``max_versions``
    age rule   = every live version created before ``now - max_age_days``
    destroy    = count rule ∪ age rule, minus the newest version if
                 the union would otherwise leave nothing behind
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from .models import RetentionPolicy, SecretVersion

logger = logging.getLogger("monorepo_secrets.retention")


@dataclass(frozen=True)
class RetentionPlan:
    """Outcome of evaluating a policy against one version snapshot.

    Attributes:
        live: Live versions, newest first.
        destroy: Versions to destroy, newest first.
        floor_applied: True when the newest version was spared to keep
            at least one version alive.
    """

    live: list[SecretVersion] = field(default_factory=list)
    destroy: list[SecretVersion] = field(default_factory=list)
    floor_applied: bool = False

    @property
    def destroy_ids(self) -> set[str]:
        return {v.id for v in self.destroy}


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _id_key(version_id: str) -> tuple[int, int, str]:
    # Store ids are usually decimal counters; compare those numerically.
    if version_id.isdigit():
        return (1, int(version_id), "")
    return (0, 0, version_id)


def _newest_first_key(version: SecretVersion) -> tuple:
    return (_as_utc(version.created_at), _id_key(version.id))


def sort_newest_first(versions: Iterable[SecretVersion]) -> list[SecretVersion]:
    """Order versions by creation time, newest first.

    Equal timestamps fall back to the version id (highest first), so
    repeated calls on the same input always give the same order.
    """
    return sorted(versions, key=_newest_first_key, reverse=True)


def plan(
    versions: Iterable[SecretVersion],
    policy: RetentionPolicy,
    now: datetime,
) -> RetentionPlan:
    """Compute the retention plan for a snapshot of versions.

    Args:
        versions: Every version the store reported for the secret.
        policy: Retention policy to apply.
        now: Reference time for the age rule.

    Returns:
        RetentionPlan with the ordered destroy list.
    """
    live = sort_newest_first(v for v in versions if v.is_live)
    if len(live) <= 1 or not policy.enabled:
        return RetentionPlan(live=live)

    marked: set[str] = set()

    if policy.max_versions > 0:
        marked.update(v.id for v in live[policy.max_versions:])

    if policy.max_age_days > 0:
        cutoff = _as_utc(now) - timedelta(days=policy.max_age_days)
        marked.update(v.id for v in live if _as_utc(v.created_at) < cutoff)

    floor_applied = False
    if len(marked) >= len(live):
        newest = live[0]
        marked.discard(newest.id)
        floor_applied = True
        logger.info(
            "Retention policy would remove every version; keeping newest %s",
            newest.id,
        )

    destroy = [v for v in live if v.id in marked]
    return RetentionPlan(live=live, destroy=destroy, floor_applied=floor_applied)


def evaluate(
    versions: Iterable[SecretVersion],
    policy: RetentionPolicy,
    now: datetime,
) -> set[str]:
    """Return the ids of the versions the policy allows destroying."""
    return plan(versions, policy, now).destroy_ids
