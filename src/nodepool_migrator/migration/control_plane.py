"""Control-plane-only upgrade."""

from __future__ import annotations

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.errors import ControlPlaneUpgradeFailed

log = structlog.get_logger()


class ControlPlaneUpgrader:
    def __init__(self, aks_client: AzureAksClient) -> None:
        self._aks = aks_client

    async def upgrade(self, kubernetes_version: str) -> None:
        """Upgrade the control plane to ``kubernetes_version``, blocking until AKS finishes."""
        log.info("control_plane_upgrade_started", version=kubernetes_version)
        try:
            state = await self._aks.upgrade_control_plane(kubernetes_version)
        except Exception as exc:
            msg = f"Control plane upgrade to {kubernetes_version} failed: {exc}"
            raise ControlPlaneUpgradeFailed(msg, resource="control-plane") from exc
        if state is not None and state != "Succeeded":
            msg = f"Control plane upgrade to {kubernetes_version} finished in state {state}"
            raise ControlPlaneUpgradeFailed(msg, resource="control-plane")
        log.info("control_plane_upgraded", version=kubernetes_version)
