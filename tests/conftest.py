"""Shared test fixtures for all test modules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import make_pool_node, make_spec

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.config import CLUSTER_MAP, ClusterRef, MigrationSettings, load_cluster_map
from nodepool_migrator.models import NodePoolSpec

FIXTURES = Path(__file__).parent / "fixtures"

os.environ["NODEPOOL_MIGRATOR_CLUSTERS"] = str(FIXTURES / "clusters.yaml")
load_cluster_map()


@pytest.fixture
def cluster() -> ClusterRef:
    return CLUSTER_MAP["prod-eastus"]


@pytest.fixture
def settings() -> MigrationSettings:
    """Settings with every wait reduced to zero."""
    return MigrationSettings(
        readiness_mode="fixed",
        readiness_delay_seconds=0,
        readiness_timeout_seconds=0,
        readiness_initial_backoff_seconds=0,
        readiness_max_backoff_seconds=0,
        drain_timeout_seconds=0,
        drain_poll_seconds=0,
        max_parallel_node_evacuations=1,
    )


@pytest.fixture
def pool_nodes() -> dict[str, list[dict[str, Any]]]:
    """Nodes per pool label served by the mock core client; tests may mutate it."""
    return {
        "nodepool1": [
            make_pool_node("aks-nodepool1-00000000"),
            make_pool_node("aks-nodepool1-00000001"),
            make_pool_node("aks-nodepool1-00000002"),
        ],
    }


@pytest.fixture
def pools() -> list[NodePoolSpec]:
    """Pools served by the mock AKS client; tests may change its contents."""
    return [make_spec()]


@pytest.fixture
def aks_client(pools: list[NodePoolSpec]) -> AsyncMock:
    """Mock AzureAksClient backed by the ``pools`` fixture."""
    aks = AsyncMock(spec=AzureAksClient)
    aks.get_upgrade_profile.return_value = {
        "control_plane_version": "1.28.5",
        "control_plane_upgrades": ["1.29.0", "1.29.2"],
    }
    aks.upgrade_control_plane.return_value = "Succeeded"
    aks.list_node_pools.side_effect = lambda: list(pools)
    aks.get_node_pool_spec.side_effect = lambda name: next(p for p in pools if p.name == name)
    aks.get_node_pool_state.return_value = {"provisioning_state": "Succeeded"}
    aks.create_node_pool.return_value = None
    aks.delete_node_pool.return_value = None
    aks.delete_machine.return_value = None
    return aks


@pytest.fixture
def core_client(pool_nodes: dict[str, list[dict[str, Any]]]) -> AsyncMock:
    """Mock K8sCoreClient backed by the ``pool_nodes`` fixture."""
    core = AsyncMock(spec=K8sCoreClient)
    core.get_active_context.return_value = "aks-prod-eastus"
    core.get_pool_nodes.side_effect = lambda pool: list(pool_nodes.get(pool, []))
    core.cordon_node.return_value = None
    core.drain_node.return_value = 4
    return core


@pytest.fixture
def call_log(aks_client: AsyncMock, core_client: AsyncMock) -> MagicMock:
    """Parent mock recording calls on both clients in the order they happen."""
    manager = MagicMock()
    manager.attach_mock(aks_client, "aks")
    manager.attach_mock(core_client, "core")
    return manager
