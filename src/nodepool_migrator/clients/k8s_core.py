"""Kubernetes Core API wrapper: active context, pool nodes, cordon, drain."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from nodepool_migrator.clients import load_k8s_api_client
from nodepool_migrator.config import ClusterRef

log = structlog.get_logger()

# AKS labels nodes with their pool under two keys depending on cluster generation.
PRIMARY_POOL_LABEL = "agentpool"
FALLBACK_POOL_LABEL = "kubernetes.azure.com/agentpool"

MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"
_TERMINAL_PHASES = {"Succeeded", "Failed"}


class DrainTimeout(TimeoutError):
    """Pods were still present on the node when the drain deadline passed."""


def _is_evictable(pod: dict[str, Any]) -> bool:
    """Pods kubectl drain --ignore-daemonsets --delete-emptydir-data would evict."""
    if "DaemonSet" in pod["owner_kinds"]:
        return False
    if pod["mirror"]:
        return False
    return pod["phase"] not in _TERMINAL_PHASES


class K8sCoreClient:
    """Wrapper around the Kubernetes Core V1 API for one cluster."""

    def __init__(self, cluster: ClusterRef) -> None:
        self._cluster = cluster
        self._api: k8s_client.CoreV1Api | None = None
        self._lock = threading.Lock()

    def _get_api(self) -> k8s_client.CoreV1Api:
        with self._lock:
            if self._api is None:
                api_client = load_k8s_api_client(self._cluster.kubeconfig_context)
                self._api = k8s_client.CoreV1Api(api_client)
            return self._api

    async def get_active_context(self) -> str | None:
        """Return the kubeconfig context calls will target, or None when there is none.

        A configured context must exist in the kubeconfig; otherwise the kubeconfig's
        current context is used.
        """
        try:
            contexts, active = await asyncio.to_thread(k8s_config.list_kube_config_contexts)
        except Exception:
            log.error("failed_to_read_kubeconfig", cluster=self._cluster.label)
            raise

        if self._cluster.kubeconfig_context:
            names = {c.get("name") for c in contexts or []}
            return self._cluster.kubeconfig_context if self._cluster.kubeconfig_context in names else None
        if not active:
            return None
        return active.get("name")

    async def get_pool_nodes(self, pool_name: str) -> list[dict[str, Any]]:
        """List nodes labelled as members of a pool, in API listing order.

        Returns a list of dicts with keys: name, pool, ready, unschedulable.
        """
        api = self._get_api()
        label_value = pool_name.lower()
        try:
            node_list = await asyncio.to_thread(api.list_node, label_selector=f"{PRIMARY_POOL_LABEL}={label_value}")
            if not node_list.items:
                node_list = await asyncio.to_thread(
                    api.list_node, label_selector=f"{FALLBACK_POOL_LABEL}={label_value}"
                )
        except Exception:
            log.error("failed_to_list_nodes", cluster=self._cluster.label, pool=pool_name)
            raise

        results: list[dict[str, Any]] = []
        for node in node_list.items:
            conditions = {c.type: c.status for c in (node.status.conditions or [])}
            results.append(
                {
                    "name": node.metadata.name,
                    "pool": pool_name,
                    "ready": conditions.get("Ready") == "True",
                    "unschedulable": bool(node.spec.unschedulable),
                }
            )
        return results

    async def cordon_node(self, node_name: str) -> None:
        """Mark a node unschedulable."""
        api = self._get_api()
        try:
            await asyncio.to_thread(api.patch_node, node_name, {"spec": {"unschedulable": True}})
        except Exception:
            log.error("failed_to_cordon_node", cluster=self._cluster.label, node=node_name)
            raise

    async def get_node_pods(self, node_name: str) -> list[dict[str, Any]]:
        """List pods scheduled on a node with the fields drain decisions depend on."""
        api = self._get_api()
        try:
            pod_list = await asyncio.to_thread(
                api.list_pod_for_all_namespaces, field_selector=f"spec.nodeName={node_name}"
            )
        except Exception:
            log.error("failed_to_list_pods", cluster=self._cluster.label, node=node_name)
            raise

        results: list[dict[str, Any]] = []
        for pod in pod_list.items:
            annotations = pod.metadata.annotations or {}
            results.append(
                {
                    "name": pod.metadata.name,
                    "namespace": pod.metadata.namespace,
                    "uid": pod.metadata.uid,
                    "owner_kinds": [ref.kind for ref in (pod.metadata.owner_references or [])],
                    "mirror": MIRROR_POD_ANNOTATION in annotations,
                    "phase": pod.status.phase if pod.status else None,
                    "local_storage": any(v.empty_dir is not None for v in (pod.spec.volumes or [])),
                }
            )
        return results

    async def drain_node(self, node_name: str, *, timeout_seconds: float, poll_seconds: float) -> int:
        """Evict every evictable pod from a node and wait until they are gone.

        DaemonSet-managed and mirror pods are left alone; pods using emptyDir storage
        are evicted and lose that data. Evictions refused by a disruption budget (429)
        are retried every ``poll_seconds``.

        Returns the number of evicted pods.

        Raises:
            DrainTimeout: If pods remain after ``timeout_seconds``.
        """
        pods = [p for p in await self.get_node_pods(node_name) if _is_evictable(p)]
        for pod in pods:
            if pod["local_storage"]:
                log.warning("deleting_local_storage", node=node_name, pod=pod["name"], namespace=pod["namespace"])
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        pending = list(pods)
        while pending:
            blocked: list[dict[str, Any]] = []
            for pod in pending:
                if not await self._evict_pod(pod):
                    blocked.append(pod)
            pending = blocked
            if pending:
                if loop.time() >= deadline:
                    names = ", ".join(f"{p['namespace']}/{p['name']}" for p in pending)
                    msg = f"Eviction of {names} still blocked by disruption budgets on {node_name}"
                    raise DrainTimeout(msg)
                await asyncio.sleep(poll_seconds)

        remaining = list(pods)
        while remaining:
            remaining = [p for p in remaining if await self._pod_still_present(p)]
            if remaining:
                if loop.time() >= deadline:
                    msg = f"{len(remaining)} evicted pods still present on {node_name}"
                    raise DrainTimeout(msg)
                await asyncio.sleep(poll_seconds)

        log.info("node_drained", cluster=self._cluster.label, node=node_name, evicted=len(pods))
        return len(pods)

    async def _evict_pod(self, pod: dict[str, Any]) -> bool:
        """Request eviction of a pod. Returns False when a disruption budget refuses it."""
        api = self._get_api()
        body = k8s_client.V1Eviction(
            metadata=k8s_client.V1ObjectMeta(name=pod["name"], namespace=pod["namespace"]),
        )
        try:
            await asyncio.to_thread(api.create_namespaced_pod_eviction, pod["name"], pod["namespace"], body)
        except ApiException as exc:
            if exc.status == 404:
                return True
            if exc.status == 429:
                log.warning("eviction_blocked", pod=pod["name"], namespace=pod["namespace"])
                return False
            log.error("failed_to_evict_pod", cluster=self._cluster.label, pod=pod["name"], namespace=pod["namespace"])
            raise
        return True

    async def _pod_still_present(self, pod: dict[str, Any]) -> bool:
        api = self._get_api()
        try:
            current = await asyncio.to_thread(api.read_namespaced_pod, pod["name"], pod["namespace"])
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise
        # A controller may recreate a pod under the same name on another node.
        return current.metadata.uid == pod["uid"]
