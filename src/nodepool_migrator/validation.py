"""Input validation helpers for pool names, versions, and settings."""

from __future__ import annotations

import re

# AKS node pool: alphanumeric, 1-12 chars, starts with a letter. AKS lower-cases names,
# so the check is case-insensitive.
_NODE_POOL_RE = re.compile(r"^[a-z][a-z0-9]{0,11}$", re.IGNORECASE)

_KUBERNETES_VERSION_RE = re.compile(r"^\d+\.\d+(\.\d+)?$")

_VALID_READINESS_MODES = {"fixed", "poll"}


def validate_node_pool(node_pool: str | None) -> None:
    """Validate an AKS node pool name."""
    if node_pool is None:
        return
    if not _NODE_POOL_RE.match(node_pool):
        msg = f"Invalid node pool name: {node_pool!r}. Must be 1-12 alphanumeric characters starting with a letter."
        raise ValueError(msg)


def validate_kubernetes_version(version: str) -> None:
    """Validate a Kubernetes version string such as '1.29.2'."""
    if not _KUBERNETES_VERSION_RE.match(version):
        msg = f"Invalid Kubernetes version: {version!r}. Expected MAJOR.MINOR.PATCH."
        raise ValueError(msg)


def validate_readiness_mode(mode: str) -> None:
    """Validate the readiness wait mode setting."""
    if mode not in _VALID_READINESS_MODES:
        valid = ", ".join(sorted(_VALID_READINESS_MODES))
        msg = f"Invalid readiness mode: {mode!r}. Must be one of: {valid}"
        raise ValueError(msg)
