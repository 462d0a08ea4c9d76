"""Pydantic v2 models for pool snapshots, migration plans, and run reports."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NodeState = Literal["Ready", "Cordoned", "Draining", "Drained", "Deleted", "Failed"]
PoolOutcome = Literal["pending", "completed", "completed_with_errors", "failed"]


# --- Output scrubbing ---

_IP_PATTERN = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")
_SUBSCRIPTION_PATTERN = re.compile(r"/subscriptions/[a-f0-9-]+", re.IGNORECASE)
_RESOURCE_GROUP_PATTERN = re.compile(r"/resourceGroups/[^/]+", re.IGNORECASE)
_FQDN_PATTERN = re.compile(r"\b[\w.-]+\.azmk8s\.io\b", re.IGNORECASE)


def scrub_sensitive_values(text: str) -> str:
    """Remove internal IPs, subscription IDs, resource group names, and API server FQDNs from text.

    Node and pool names are preserved.
    """
    if not text:
        return text
    result = _IP_PATTERN.sub("[REDACTED_IP]", text)
    result = _RESOURCE_GROUP_PATTERN.sub("/resourceGroups/[REDACTED]", result)
    result = _SUBSCRIPTION_PATTERN.sub("/subscriptions/[REDACTED]", result)
    result = _FQDN_PATTERN.sub("[REDACTED_FQDN]", result)
    return result


# --- Node pool models ---


class NodePoolSpec(BaseModel):
    """Read-only configuration snapshot of a node pool, copied into its twin's creation request."""

    model_config = ConfigDict(frozen=True)

    name: str
    vm_size: str
    count: int | None = None
    autoscale_enabled: bool = False
    min_count: int | None = None
    max_count: int | None = None
    max_pods: int | None = None
    mode: str

    @property
    def minimum_ready_nodes(self) -> int:
        """Nodes that must be Ready before the pool can take evacuated workloads."""
        if self.autoscale_enabled and self.min_count is not None:
            return self.min_count
        return self.count or 0

    def clone_as(self, name: str) -> NodePoolSpec:
        return self.model_copy(update={"name": name})


class NodeRef(BaseModel):
    """A node and the pool label it carries, with its evacuation state."""

    name: str
    pool: str
    state: NodeState = "Ready"


class MigrationPlan(BaseModel):
    """Source and replacement pool for one pool of the run."""

    model_config = ConfigDict(frozen=True)

    source_pool: str
    target_pool: str
    mode: str


# --- Run report models ---


class PoolMigrationResult(BaseModel):
    """Outcome of replacing one pool."""

    source_pool: str
    target_pool: str
    outcome: PoolOutcome = "pending"
    nodes: list[NodeRef] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class MigrationReport(BaseModel):
    """Outcome of a whole run."""

    cluster: str
    context: str | None = None
    target_version: str | None = None
    control_plane_upgraded: bool = False
    pools: list[PoolMigrationResult] = Field(default_factory=list)

    @property
    def completed_pools(self) -> list[str]:
        return [p.source_pool for p in self.pools if p.outcome in ("completed", "completed_with_errors")]

    def summary_lines(self) -> list[str]:
        if self.control_plane_upgraded:
            lines = [f"Cluster {self.cluster}: control plane upgraded to {self.target_version}"]
        else:
            lines = [f"Cluster {self.cluster}: control plane not upgraded"]
        for pool in self.pools:
            line = f"  {pool.source_pool} -> {pool.target_pool}: {pool.outcome} ({len(pool.nodes)} nodes)"
            lines.append(line)
            lines.extend(f"    ! {err}" for err in pool.errors)
        return lines


# --- MCP tool outputs ---


class UpgradeVersionsOutput(BaseModel):
    """Output for get_upgrade_versions."""

    cluster: str
    control_plane_version: str | None = None
    available_upgrades: list[str] = Field(default_factory=list)
    summary: str
    timestamp: str


class MigrationPlanOutput(BaseModel):
    """Output for plan_node_pool_migration."""

    cluster: str
    target_version: str
    plans: list[MigrationPlan] = Field(default_factory=list)
    error: str | None = None
    summary: str
    timestamp: str
