"""Client wrappers for the Kubernetes and Azure AKS APIs."""

from __future__ import annotations

from kubernetes import client as k8s_client
from kubernetes.config import new_client_from_config


def load_k8s_api_client(context: str | None = None) -> k8s_client.ApiClient:
    """Create an isolated Kubernetes API client for the given kubeconfig context.

    Uses new_client_from_config to avoid mutating the global K8s SDK configuration.
    A context of None selects the kubeconfig's current context.
    """
    return new_client_from_config(context=context)
