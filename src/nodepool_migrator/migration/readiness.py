"""Waiting for a freshly created pool to accept workloads."""

from __future__ import annotations

import asyncio

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.config import MigrationSettings
from nodepool_migrator.errors import PoolNotReady
from nodepool_migrator.models import NodePoolSpec

log = structlog.get_logger()

# AKS does not move a pool out of these on its own.
_TERMINAL_FAILURE_STATES = {"Failed", "Canceled"}


class ReadinessWaiter:
    """Blocks until a new pool can take evacuated workloads.

    ``fixed`` mode sleeps for a set delay. ``poll`` mode checks AKS provisioning state
    and the pool's Ready node count, backing off exponentially up to a timeout.
    """

    def __init__(self, aks_client: AzureAksClient, core_client: K8sCoreClient, settings: MigrationSettings) -> None:
        self._aks = aks_client
        self._core = core_client
        self._settings = settings

    async def wait(self, spec: NodePoolSpec) -> None:
        if self._settings.readiness_mode == "fixed":
            log.info("readiness_delay", pool=spec.name, seconds=self._settings.readiness_delay_seconds)
            await asyncio.sleep(self._settings.readiness_delay_seconds)
            return
        await self._poll_until_ready(spec)

    async def _poll_until_ready(self, spec: NodePoolSpec) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.readiness_timeout_seconds
        backoff = self._settings.readiness_initial_backoff_seconds
        required = spec.minimum_ready_nodes

        while True:
            state, ready = await self._observe(spec)
            if state in _TERMINAL_FAILURE_STATES:
                raise PoolNotReady(f"Provisioning of {spec.name} ended in state {state}", resource=spec.name)
            if state == "Succeeded" and ready >= required:
                log.info("node_pool_ready", pool=spec.name, ready_nodes=ready, required=required)
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                msg = (
                    f"{spec.name} not ready after {self._settings.readiness_timeout_seconds:.0f}s "
                    f"(state {state}, {ready}/{required} nodes Ready)"
                )
                raise PoolNotReady(msg, resource=spec.name)

            log.info("waiting_for_node_pool", pool=spec.name, state=state, ready_nodes=ready, required=required)
            await asyncio.sleep(min(backoff, remaining))
            backoff = min(backoff * 2, self._settings.readiness_max_backoff_seconds)

    async def _observe(self, spec: NodePoolSpec) -> tuple[str | None, int]:
        try:
            pool_state = await self._aks.get_node_pool_state(spec.name)
            nodes = await self._core.get_pool_nodes(spec.name)
        except Exception as exc:
            raise PoolNotReady(f"Unable to read state of {spec.name}: {exc}", resource=spec.name) from exc
        return pool_state.get("provisioning_state"), sum(1 for n in nodes if n["ready"])
