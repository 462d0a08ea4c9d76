"""MCP server exposing read-only upgrade planning for configured clusters."""

from __future__ import annotations

import time
from datetime import UTC, datetime

import structlog
from mcp.server.fastmcp import FastMCP

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.config import load_cluster_map, resolve_cluster, validate_cluster_config
from nodepool_migrator.errors import MigrationError
from nodepool_migrator.logs import configure_logging
from nodepool_migrator.migration.planner import plan_migrations
from nodepool_migrator.models import MigrationPlanOutput, UpgradeVersionsOutput, scrub_sensitive_values
from nodepool_migrator.validation import validate_kubernetes_version

log = structlog.get_logger()

mcp = FastMCP("Node Pool Migrator")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def get_upgrade_versions_handler(cluster_id: str) -> UpgradeVersionsOutput:
    """Core handler for get_upgrade_versions."""
    cluster = resolve_cluster(cluster_id)
    profile = await AzureAksClient(cluster).get_upgrade_profile()
    available = profile.get("control_plane_upgrades", [])
    current = profile.get("control_plane_version")
    if available:
        summary = f"{cluster_id} running {current}, can upgrade to {', '.join(available)}"
    else:
        summary = f"{cluster_id} running {current}, no upgrades available"
    return UpgradeVersionsOutput(
        cluster=cluster_id,
        control_plane_version=current,
        available_upgrades=available,
        summary=summary,
        timestamp=datetime.now(tz=UTC).isoformat(),
    )


async def plan_node_pool_migration_handler(cluster_id: str, kubernetes_version: str) -> MigrationPlanOutput:
    """Core handler for plan_node_pool_migration. Planning errors are reported, not raised."""
    validate_kubernetes_version(kubernetes_version)
    cluster = resolve_cluster(cluster_id)
    pools = await AzureAksClient(cluster).list_node_pools()
    timestamp = datetime.now(tz=UTC).isoformat()
    try:
        plans = plan_migrations(pools, kubernetes_version)
    except MigrationError as exc:
        return MigrationPlanOutput(
            cluster=cluster_id,
            target_version=kubernetes_version,
            error=f"{exc.stage}: {exc}",
            summary=f"Migration of {cluster_id} to {kubernetes_version} cannot proceed",
            timestamp=timestamp,
        )
    return MigrationPlanOutput(
        cluster=cluster_id,
        target_version=kubernetes_version,
        plans=plans,
        summary=f"{len(plans)} node pools in {cluster_id} would be replaced",
        timestamp=timestamp,
    )


@mcp.tool()
async def get_upgrade_versions(cluster: str) -> str:
    """List the Kubernetes versions an AKS cluster's control plane can upgrade to.

    Args:
        cluster: Cluster ID from clusters.yaml (e.g., 'prod-eastus').
    """
    start = time.monotonic()
    try:
        result = await get_upgrade_versions_handler(cluster)
        log.info("tool_completed", tool="get_upgrade_versions", cluster=cluster, latency_ms=_elapsed_ms(start))
        return scrub_sensitive_values(result.model_dump_json(indent=2))
    except Exception as e:
        sanitised = scrub_sensitive_values(str(e))
        log.error("tool_failed", tool="get_upgrade_versions", cluster=cluster, error=sanitised)
        raise RuntimeError(sanitised) from None


@mcp.tool()
async def plan_node_pool_migration(cluster: str, kubernetes_version: str) -> str:
    """Preview the blue-green node pool replacement for an upgrade without changing the cluster.

    Returns each existing pool with the name of the pool that would replace it, or the
    reason the migration could not proceed (e.g., two pools sharing a mode).

    Args:
        cluster: Cluster ID from clusters.yaml (e.g., 'prod-eastus').
        kubernetes_version: Target Kubernetes version (e.g., '1.29.2').
    """
    start = time.monotonic()
    try:
        result = await plan_node_pool_migration_handler(cluster, kubernetes_version)
        log.info("tool_completed", tool="plan_node_pool_migration", cluster=cluster, latency_ms=_elapsed_ms(start))
        return scrub_sensitive_values(result.model_dump_json(indent=2))
    except Exception as e:
        sanitised = scrub_sensitive_values(str(e))
        log.error("tool_failed", tool="plan_node_pool_migration", cluster=cluster, error=sanitised)
        raise RuntimeError(sanitised) from None


def main() -> None:
    configure_logging()
    load_cluster_map()
    validate_cluster_config()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
