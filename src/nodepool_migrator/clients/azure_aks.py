"""AKS management API wrapper: upgrade profile, control plane upgrade, node pool CRUD, machines."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from azure.identity import DefaultAzureCredential
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.containerservice.models import AgentPool, AgentPoolDeleteMachinesParameter

from nodepool_migrator.config import ClusterRef
from nodepool_migrator.models import NodePoolSpec

log = structlog.get_logger()


def _aks_pool_name(name: str) -> str:
    # AKS only accepts lower-case agent pool names.
    return name.lower()


def _to_spec(pool: Any) -> NodePoolSpec:
    return NodePoolSpec(
        name=pool.name,
        vm_size=pool.vm_size,
        count=pool.count,
        autoscale_enabled=bool(pool.enable_auto_scaling),
        min_count=pool.min_count,
        max_count=pool.max_count,
        max_pods=pool.max_pods,
        # The SDK returns AgentPoolMode members; str() would give "AgentPoolMode.USER".
        mode=str(getattr(pool.mode, "value", pool.mode)),
    )


class AzureAksClient:
    """Wrapper around the Azure AKS management APIs for one cluster."""

    def __init__(self, cluster: ClusterRef) -> None:
        self._cluster = cluster
        self._container_client: ContainerServiceClient | None = None
        self._credential: DefaultAzureCredential | None = None
        # RLock is needed because _get_container_client calls _get_credential.
        self._lock = threading.RLock()

    def _get_credential(self) -> DefaultAzureCredential:
        with self._lock:
            if self._credential is None:
                self._credential = DefaultAzureCredential()
            return self._credential

    def _get_container_client(self) -> ContainerServiceClient:
        with self._lock:
            if self._container_client is None:
                self._container_client = ContainerServiceClient(
                    credential=self._get_credential(),
                    subscription_id=self._cluster.subscription_id,
                )
            return self._container_client

    async def get_upgrade_profile(self) -> dict[str, Any]:
        """Get the control plane version and the versions it can upgrade to."""
        client = self._get_container_client()
        try:
            profile = await asyncio.to_thread(
                client.managed_clusters.get_upgrade_profile,
                self._cluster.resource_group,
                self._cluster.cluster_name,
            )
        except Exception:
            log.error("failed_to_get_upgrade_profile", cluster=self._cluster.label)
            raise

        control_plane_upgrades: list[str] = []
        if profile.control_plane_profile and profile.control_plane_profile.upgrades:
            control_plane_upgrades = [
                str(u.kubernetes_version) for u in profile.control_plane_profile.upgrades if u
            ]

        return {
            "control_plane_version": (
                profile.control_plane_profile.kubernetes_version if profile.control_plane_profile else None
            ),
            "control_plane_upgrades": control_plane_upgrades,
        }

    async def upgrade_control_plane(self, kubernetes_version: str) -> str | None:
        """Upgrade only the control plane and block until AKS reports completion.

        Agent pool orchestrator versions are left as they are, so no node is touched.

        Returns the provisioning state reported by the finished operation.
        """
        client = self._get_container_client()
        try:
            cluster = await asyncio.to_thread(
                client.managed_clusters.get,
                self._cluster.resource_group,
                self._cluster.cluster_name,
            )
            cluster.kubernetes_version = kubernetes_version
            poller = await asyncio.to_thread(
                client.managed_clusters.begin_create_or_update,
                self._cluster.resource_group,
                self._cluster.cluster_name,
                cluster,
            )
            result = await asyncio.to_thread(poller.result)
        except Exception:
            log.error(
                "failed_to_upgrade_control_plane",
                cluster=self._cluster.label,
                version=kubernetes_version,
            )
            raise
        return result.provisioning_state if result is not None else None

    async def list_node_pools(self) -> list[NodePoolSpec]:
        """List the cluster's node pools in the order AKS returns them."""
        client = self._get_container_client()
        try:
            pools = await asyncio.to_thread(
                lambda: list(
                    client.agent_pools.list(self._cluster.resource_group, self._cluster.cluster_name)
                )
            )
        except Exception:
            log.error("failed_to_list_node_pools", cluster=self._cluster.label)
            raise
        return [_to_spec(pool) for pool in pools]

    async def get_node_pool_spec(self, pool_name: str) -> NodePoolSpec:
        """Describe a node pool's configuration and mode."""
        pool = await self._get_agent_pool(pool_name)
        return _to_spec(pool)

    async def get_node_pool_state(self, pool_name: str) -> dict[str, Any]:
        """Get the provisioning state of a specific node pool."""
        pool = await self._get_agent_pool(pool_name)
        return {"name": pool.name, "provisioning_state": pool.provisioning_state}

    async def _get_agent_pool(self, pool_name: str) -> Any:
        client = self._get_container_client()
        try:
            return await asyncio.to_thread(
                client.agent_pools.get,
                self._cluster.resource_group,
                self._cluster.cluster_name,
                _aks_pool_name(pool_name),
            )
        except Exception:
            log.error("failed_to_get_node_pool", cluster=self._cluster.label, pool=pool_name)
            raise

    async def create_node_pool(self, spec: NodePoolSpec) -> None:
        """Submit creation of a node pool carrying ``spec``; returns once AKS accepts the request.

        No orchestrator version is set, so the pool comes up at the control plane version.
        """
        client = self._get_container_client()
        parameters = AgentPool(
            vm_size=spec.vm_size,
            count=spec.count,
            enable_auto_scaling=spec.autoscale_enabled,
            min_count=spec.min_count if spec.autoscale_enabled else None,
            max_count=spec.max_count if spec.autoscale_enabled else None,
            max_pods=spec.max_pods,
            mode=spec.mode,
        )
        try:
            await asyncio.to_thread(
                client.agent_pools.begin_create_or_update,
                self._cluster.resource_group,
                self._cluster.cluster_name,
                _aks_pool_name(spec.name),
                parameters,
            )
        except Exception:
            log.error("failed_to_create_node_pool", cluster=self._cluster.label, pool=spec.name)
            raise

    async def delete_node_pool(self, pool_name: str) -> None:
        """Delete a node pool definition and block until AKS confirms."""
        client = self._get_container_client()
        try:
            poller = await asyncio.to_thread(
                client.agent_pools.begin_delete,
                self._cluster.resource_group,
                self._cluster.cluster_name,
                _aks_pool_name(pool_name),
            )
            await asyncio.to_thread(poller.result)
        except Exception:
            log.error("failed_to_delete_node_pool", cluster=self._cluster.label, pool=pool_name)
            raise

    async def delete_machine(self, pool_name: str, machine_name: str) -> None:
        """Submit deletion of the VM backing a node; returns once AKS accepts the request."""
        client = self._get_container_client()
        try:
            await asyncio.to_thread(
                client.agent_pools.begin_delete_machines,
                self._cluster.resource_group,
                self._cluster.cluster_name,
                _aks_pool_name(pool_name),
                AgentPoolDeleteMachinesParameter(machine_names=[machine_name]),
            )
        except Exception:
            log.error(
                "failed_to_delete_machine",
                cluster=self._cluster.label,
                pool=pool_name,
                node=machine_name,
            )
            raise
