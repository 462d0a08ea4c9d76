"""Per-node evacuation of a pool: cordon, drain, delete."""

from __future__ import annotations

import asyncio

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.config import MigrationSettings
from nodepool_migrator.errors import (
    EmptyPool,
    MigrationError,
    NodeCordonFailed,
    NodeDeleteFailed,
    NodeDrainFailed,
    PoolEvacuationFailed,
)
from nodepool_migrator.models import NodeRef, NodeState

log = structlog.get_logger()

_TRANSITIONS: dict[NodeState, set[NodeState]] = {
    "Ready": {"Cordoned", "Failed"},
    "Cordoned": {"Draining", "Failed"},
    "Draining": {"Drained", "Failed"},
    "Drained": {"Deleted", "Failed"},
    "Deleted": set(),
    "Failed": set(),
}


def advance(node: NodeRef, state: NodeState) -> None:
    """Move a node to ``state``, refusing transitions that skip a step."""
    if state not in _TRANSITIONS[node.state]:
        msg = f"Illegal transition for {node.name}: {node.state} -> {state}"
        raise RuntimeError(msg)
    log.debug("node_state_changed", node=node.name, pool=node.pool, previous=node.state, state=state)
    node.state = state


class NodeDrainer:
    """Evacuates every node of a pool.

    With ``max_parallel_node_evacuations`` of 1 nodes go strictly one after another in
    listing order and the first failure aborts. Above 1, nodes are evacuated by a bounded
    worker pool; a failing node does not stop the others, and the failures are raised
    together once every node has finished.
    """

    def __init__(self, aks_client: AzureAksClient, core_client: K8sCoreClient, settings: MigrationSettings) -> None:
        self._aks = aks_client
        self._core = core_client
        self._settings = settings

    async def list_nodes(self, pool_name: str) -> list[NodeRef]:
        nodes = await self._core.get_pool_nodes(pool_name)
        if not nodes:
            raise EmptyPool(f"No nodes carry the pool label of {pool_name}", resource=pool_name)
        return [NodeRef(name=n["name"], pool=pool_name) for n in nodes]

    async def evacuate(self, pool_name: str, nodes: list[NodeRef] | None = None) -> list[NodeRef]:
        """Drive every node of ``pool_name`` to Deleted.

        ``nodes`` receives the node refs as they are tracked, so callers can report
        progress even when evacuation fails.
        """
        tracked = nodes if nodes is not None else []
        tracked.extend(await self.list_nodes(pool_name))
        log.info("evacuating_node_pool", pool=pool_name, nodes=len(tracked))

        parallelism = max(1, self._settings.max_parallel_node_evacuations)
        if parallelism == 1:
            for node in tracked:
                await self.evacuate_node(node)
            return tracked

        semaphore = asyncio.Semaphore(parallelism)

        async def _bounded(node: NodeRef) -> None:
            async with semaphore:
                await self.evacuate_node(node)

        results = await asyncio.gather(*(_bounded(n) for n in tracked), return_exceptions=True)
        failures: list[MigrationError] = []
        for result in results:
            if isinstance(result, MigrationError):
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
        if failures:
            failed = ", ".join(str(f.resource) for f in failures)
            raise PoolEvacuationFailed(
                f"Evacuation of {pool_name} failed on nodes: {failed}",
                resource=pool_name,
                failures=failures,
            )
        return tracked

    async def evacuate_node(self, node: NodeRef) -> None:
        try:
            await self._core.cordon_node(node.name)
        except Exception as exc:
            advance(node, "Failed")
            raise NodeCordonFailed(f"Cordon of {node.name} failed: {exc}", resource=node.name) from exc
        advance(node, "Cordoned")
        log.info("node_cordoned", node=node.name, pool=node.pool)

        advance(node, "Draining")
        try:
            await self._core.drain_node(
                node.name,
                timeout_seconds=self._settings.drain_timeout_seconds,
                poll_seconds=self._settings.drain_poll_seconds,
            )
        except Exception as exc:
            advance(node, "Failed")
            raise NodeDrainFailed(f"Drain of {node.name} failed: {exc}", resource=node.name) from exc
        advance(node, "Drained")

        try:
            await self._aks.delete_machine(node.pool, node.name)
        except Exception as exc:
            advance(node, "Failed")
            raise NodeDeleteFailed(f"Deletion of {node.name} failed: {exc}", resource=node.name) from exc
        advance(node, "Deleted")
        log.info("node_deleted", node=node.name, pool=node.pool)
