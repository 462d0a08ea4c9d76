"""Test data builders shared by test modules."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from nodepool_migrator.models import NodePoolSpec


def make_spec(
    name: str = "nodepool1",
    mode: str = "User",
    vm_size: str = "Standard_D4s_v5",
    count: int | None = 3,
    autoscale_enabled: bool = False,
    min_count: int | None = None,
    max_count: int | None = None,
    max_pods: int | None = 110,
) -> NodePoolSpec:
    """Create a node pool snapshot."""
    return NodePoolSpec(
        name=name,
        vm_size=vm_size,
        count=count,
        autoscale_enabled=autoscale_enabled,
        min_count=min_count,
        max_count=max_count,
        max_pods=max_pods,
        mode=mode,
    )


def make_pool_node(name: str, pool: str = "nodepool1", ready: bool = True) -> dict[str, Any]:
    """Create a node dict as returned by K8sCoreClient.get_pool_nodes."""
    return {"name": name, "pool": pool, "ready": ready, "unschedulable": False}


def called(manager: MagicMock, *names: str) -> list[tuple[str, tuple[Any, ...]]]:
    """Ordered (method, args) pairs of the given methods recorded on a parent mock."""
    result = []
    for c in manager.mock_calls:
        name = c[0].split(".")[-1]
        if name in names:
            result.append((name, tuple(c[1])))
    return result
