"""Replacement pool naming and up-front plan validation."""

from __future__ import annotations

from collections import defaultdict

from nodepool_migrator.errors import DuplicateDerivedName, InvalidPoolName, PoolNameCollision
from nodepool_migrator.models import MigrationPlan, NodePoolSpec
from nodepool_migrator.validation import validate_node_pool


def derive_pool_name(mode: str, kubernetes_version: str) -> str:
    """Name of the replacement pool for a pool of ``mode`` at ``kubernetes_version``.

    >>> derive_pool_name("User", "1.29.2")
    'Userpool1292'
    """
    return f"{mode}pool{kubernetes_version.replace('.', '')}"


def plan_migrations(pools: list[NodePoolSpec], kubernetes_version: str) -> list[MigrationPlan]:
    """Build one plan per pool, in listing order.

    Raises:
        DuplicateDerivedName: Two pools share a mode and so would share a replacement name.
        PoolNameCollision: A replacement name is already used by an existing pool.
        InvalidPoolName: A replacement name is not a valid AKS pool name.
    """
    plans = [
        MigrationPlan(
            source_pool=pool.name,
            target_pool=derive_pool_name(pool.mode, kubernetes_version),
            mode=pool.mode,
        )
        for pool in pools
    ]

    by_target: dict[str, list[str]] = defaultdict(list)
    for plan in plans:
        by_target[plan.target_pool.lower()].append(plan.source_pool)
    for target, sources in by_target.items():
        if len(sources) > 1:
            msg = f"Pools {', '.join(sources)} would all be replaced by a pool named {target}"
            raise DuplicateDerivedName(msg, resource=target)

    existing = {pool.name.lower() for pool in pools}
    for plan in plans:
        if plan.target_pool.lower() in existing:
            msg = f"Replacement name {plan.target_pool} for {plan.source_pool} is already used by an existing pool"
            raise PoolNameCollision(msg, resource=plan.target_pool)
        try:
            validate_node_pool(plan.target_pool)
        except ValueError as exc:
            raise InvalidPoolName(str(exc), resource=plan.target_pool) from exc

    return plans
