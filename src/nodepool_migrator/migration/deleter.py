"""Removal of an evacuated pool's definition."""

from __future__ import annotations

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.errors import PoolDeleteFailed

log = structlog.get_logger()


class NodePoolDeleter:
    def __init__(self, aks_client: AzureAksClient) -> None:
        self._aks = aks_client

    async def delete(self, pool_name: str) -> PoolDeleteFailed | None:
        """Delete the pool definition. A failure is logged and returned, never raised."""
        try:
            await self._aks.delete_node_pool(pool_name)
        except Exception as exc:
            error = PoolDeleteFailed(f"Deletion of node pool {pool_name} failed: {exc}", resource=pool_name)
            log.error("node_pool_delete_failed", pool=pool_name, stage=error.stage, error=str(exc))
            return error
        log.info("node_pool_deleted", pool=pool_name)
        return None
