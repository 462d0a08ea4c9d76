"""Checks and operator interactions that run before anything is mutated."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.errors import (
    NoActiveContext,
    PreconditionsUnconfirmed,
    UpgradeVersionsUnavailable,
    VersionNotSelected,
)

log = structlog.get_logger()

AFFIRMATIVE_TOKEN = "yes"

CONFIRMATION_MESSAGE = (
    "Before upgrading, confirm you have verified that:\n"
    "  - the subnet has enough free IP addresses for a second copy of every node pool,\n"
    "  - pod disruption budgets allow every workload to be evicted,\n"
    "  - the subscription has vCPU quota for the replacement pools.\n"
    "Replacement pools are named only after the control plane upgrade, and a System pool derives a\n"
    "14-character name that exceeds the AKS limit. Run 'nodepool-migrator plan' first to review them.\n"
    f"Type '{AFFIRMATIVE_TOKEN}' to continue"
)

VersionPrompt = Callable[[list[str]], str]
ConfirmationPrompt = Callable[[str], str]


class PrerequisiteChecker:
    """Confirms an addressable cluster context exists."""

    def __init__(self, core_client: K8sCoreClient) -> None:
        self._core = core_client

    async def check(self) -> str:
        try:
            context = await self._core.get_active_context()
        except Exception as exc:
            raise NoActiveContext(f"Unable to read kubeconfig: {exc}") from exc
        if not context:
            raise NoActiveContext("No active Kubernetes context is configured")
        log.info("active_context_found", context=context)
        return context


class VersionResolver:
    """Determines the upgrade target, asking the operator when none was given."""

    def __init__(self, aks_client: AzureAksClient, prompt: VersionPrompt) -> None:
        self._aks = aks_client
        self._prompt = prompt

    async def resolve(self, requested: str | None) -> str:
        if requested:
            return requested.strip()

        try:
            profile = await self._aks.get_upgrade_profile()
        except Exception as exc:
            raise UpgradeVersionsUnavailable(f"Unable to read available upgrades: {exc}") from exc

        available = profile.get("control_plane_upgrades", [])
        log.info(
            "upgrade_versions_available",
            current=profile.get("control_plane_version"),
            available=available,
        )
        # Answers outside ``available`` go through to AKS unchecked.
        version = (self._prompt(available) or "").strip()
        if not version:
            raise VersionNotSelected("No target Kubernetes version was selected")
        return version


class ConfirmationGate:
    """Requires the operator to attest that out-of-band preconditions hold."""

    def __init__(self, prompt: ConfirmationPrompt) -> None:
        self._prompt = prompt

    def confirm(self, force: bool = False) -> None:
        if force:
            log.warning("confirmation_bypassed")
            return
        response = self._prompt(CONFIRMATION_MESSAGE)
        if response != AFFIRMATIVE_TOKEN:
            raise PreconditionsUnconfirmed("Upgrade preconditions were not confirmed; nothing was changed")
        log.info("preconditions_confirmed")
