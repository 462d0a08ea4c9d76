"""Blue-green twin creation for a node pool."""

from __future__ import annotations

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.errors import PoolCloneFailed
from nodepool_migrator.models import MigrationPlan, NodePoolSpec

log = structlog.get_logger()


class NodePoolCloner:
    def __init__(self, aks_client: AzureAksClient) -> None:
        self._aks = aks_client

    async def clone(self, plan: MigrationPlan) -> NodePoolSpec:
        """Snapshot the source pool and submit creation of an identical pool under the target name.

        Returns the submitted spec. The pool is not ready when this returns.
        """
        try:
            source = await self._aks.get_node_pool_spec(plan.source_pool)
            target = source.clone_as(plan.target_pool)
            await self._aks.create_node_pool(target)
        except Exception as exc:
            msg = f"Cloning {plan.source_pool} into {plan.target_pool} failed: {exc}"
            raise PoolCloneFailed(msg, resource=plan.target_pool) from exc

        log.info(
            "node_pool_clone_submitted",
            source=plan.source_pool,
            target=target.name,
            vm_size=target.vm_size,
            count=target.count,
            autoscale=target.autoscale_enabled,
        )
        return target
