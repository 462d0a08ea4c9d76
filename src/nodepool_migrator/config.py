"""Cluster references, migration settings, and environment variable overrides."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class ClusterRef:
    """Identifies the AKS cluster targeted by every call of a run."""

    cluster_name: str
    resource_group: str
    subscription_id: str
    kubeconfig_context: str | None = None
    cluster_id: str = ""

    @property
    def label(self) -> str:
        return self.cluster_id or self.cluster_name


@dataclass(frozen=True)
class MigrationSettings:
    """Timing and concurrency knobs with environment variable overrides."""

    readiness_mode: str = field(default_factory=lambda: os.environ.get("MIGRATOR_READINESS_MODE", "poll"))
    readiness_delay_seconds: float = field(
        default_factory=lambda: float(os.environ.get("MIGRATOR_READINESS_DELAY_SECONDS", "300"))
    )
    readiness_timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("MIGRATOR_READINESS_TIMEOUT_SECONDS", "1800"))
    )
    readiness_initial_backoff_seconds: float = field(
        default_factory=lambda: float(os.environ.get("MIGRATOR_READINESS_INITIAL_BACKOFF_SECONDS", "10"))
    )
    readiness_max_backoff_seconds: float = field(
        default_factory=lambda: float(os.environ.get("MIGRATOR_READINESS_MAX_BACKOFF_SECONDS", "120"))
    )
    drain_timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("MIGRATOR_DRAIN_TIMEOUT_SECONDS", "900"))
    )
    drain_poll_seconds: float = field(default_factory=lambda: float(os.environ.get("MIGRATOR_DRAIN_POLL_SECONDS", "5")))
    max_parallel_node_evacuations: int = field(
        default_factory=lambda: int(os.environ.get("MIGRATOR_MAX_PARALLEL_NODES", "1"))
    )


_REQUIRED_FIELDS = (
    "subscription_id",
    "resource_group",
    "aks_cluster_name",
)


def _load_cluster_map(path: Path) -> dict[str, ClusterRef]:
    """Parse a YAML cluster configuration file and return a mapping of cluster ID to ClusterRef.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A dict mapping cluster IDs to ClusterRef objects.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the file content is malformed or missing required fields.
    """
    if not path.exists():
        msg = (
            f"Cluster configuration file not found: {path}. "
            "Create clusters.yaml or set NODEPOOL_MIGRATOR_CLUSTERS to point to your config file."
        )
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())

    if not isinstance(raw, dict) or "clusters" not in raw:
        msg = f"Cluster config file {path} must contain a top-level 'clusters' key."
        raise ValueError(msg)

    clusters_raw: Any = raw["clusters"]
    if not isinstance(clusters_raw, dict) or len(clusters_raw) == 0:
        msg = f"Cluster config file {path} has an empty or invalid 'clusters' section."
        raise ValueError(msg)

    cluster_map: dict[str, ClusterRef] = {}
    for cluster_id, entry in clusters_raw.items():
        if not isinstance(entry, dict):
            msg = f"Cluster '{cluster_id}' must be a mapping, got {type(entry).__name__}."
            raise ValueError(msg)

        missing = [f for f in _REQUIRED_FIELDS if f not in entry]
        if missing:
            msg = f"Cluster '{cluster_id}' is missing required fields: {', '.join(missing)}."
            raise ValueError(msg)

        context = entry.get("kubeconfig_context")
        cluster_map[cluster_id] = ClusterRef(
            cluster_name=str(entry["aks_cluster_name"]),
            resource_group=str(entry["resource_group"]),
            subscription_id=str(entry["subscription_id"]),
            kubeconfig_context=str(context) if context else None,
            cluster_id=str(cluster_id),
        )

    return cluster_map


CLUSTER_MAP: dict[str, ClusterRef] = {}


def load_cluster_map() -> dict[str, ClusterRef]:
    """Load cluster configuration from YAML into the module-level CLUSTER_MAP.

    Reads the file path from the ``NODEPOOL_MIGRATOR_CLUSTERS`` environment variable,
    defaulting to ``clusters.yaml`` in the current working directory.
    """
    path = Path(os.environ.get("NODEPOOL_MIGRATOR_CLUSTERS", "clusters.yaml"))
    loaded = _load_cluster_map(path)
    CLUSTER_MAP.clear()
    CLUSTER_MAP.update(loaded)
    return CLUSTER_MAP


def resolve_cluster(cluster_id: str) -> ClusterRef:
    """Resolve a configured cluster ID to its ClusterRef.

    Raises:
        ValueError: If the cluster_id is not found in CLUSTER_MAP.
    """
    if cluster_id not in CLUSTER_MAP:
        valid = ", ".join(sorted(CLUSTER_MAP.keys()))
        msg = f"Unknown cluster '{cluster_id}'. Valid clusters: {valid}"
        raise ValueError(msg)
    return CLUSTER_MAP[cluster_id]


def build_cluster_ref(
    cluster_name: str,
    resource_group: str,
    subscription_id: str | None = None,
    kubeconfig_context: str | None = None,
) -> ClusterRef:
    """Build a ClusterRef from command line values.

    The subscription falls back to ``AZURE_SUBSCRIPTION_ID``.

    Raises:
        ValueError: If no subscription can be determined.
    """
    subscription = subscription_id or os.environ.get("AZURE_SUBSCRIPTION_ID", "")
    if not subscription:
        msg = "No subscription ID given. Pass --subscription-id or set AZURE_SUBSCRIPTION_ID."
        raise ValueError(msg)
    return ClusterRef(
        cluster_name=cluster_name,
        resource_group=resource_group,
        subscription_id=subscription,
        kubeconfig_context=kubeconfig_context,
    )


_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def validate_cluster_ref(cluster: ClusterRef) -> list[str]:
    """Return the configuration problems of a single ClusterRef."""
    errors: list[str] = []
    label = cluster.label
    if cluster.subscription_id.startswith("<") and cluster.subscription_id.endswith(">"):
        errors.append(f"{label}: placeholder subscription_id detected")
    elif not _UUID_RE.match(cluster.subscription_id):
        errors.append(f"{label}: subscription_id is not a valid UUID")

    if not cluster.resource_group:
        errors.append(f"{label}: resource_group is empty")
    if not cluster.cluster_name:
        errors.append(f"{label}: aks_cluster_name is empty")
    return errors


def validate_cluster_config() -> None:
    """Validate all configured clusters.

    Raises RuntimeError if placeholder subscription IDs, invalid UUID formats,
    or empty required fields are detected.
    """
    errors: list[str] = []
    for cluster in CLUSTER_MAP.values():
        errors.extend(validate_cluster_ref(cluster))

    if errors:
        detail = "; ".join(errors)
        msg = f"Cluster configuration errors: {detail}."
        raise RuntimeError(msg)


def get_settings() -> MigrationSettings:
    """Return migration settings with environment variable overrides applied."""
    return MigrationSettings()
