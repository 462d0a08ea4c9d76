"""Top-level driver of a blue-green node pool upgrade run."""

from __future__ import annotations

import structlog

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.config import ClusterRef, MigrationSettings
from nodepool_migrator.errors import MigrationError, PoolListFailed
from nodepool_migrator.migration.cloner import NodePoolCloner
from nodepool_migrator.migration.control_plane import ControlPlaneUpgrader
from nodepool_migrator.migration.deleter import NodePoolDeleter
from nodepool_migrator.migration.drainer import NodeDrainer
from nodepool_migrator.migration.planner import plan_migrations
from nodepool_migrator.migration.preflight import (
    ConfirmationGate,
    ConfirmationPrompt,
    PrerequisiteChecker,
    VersionPrompt,
    VersionResolver,
)
from nodepool_migrator.migration.readiness import ReadinessWaiter
from nodepool_migrator.models import MigrationPlan, MigrationReport, PoolMigrationResult
from nodepool_migrator.validation import validate_readiness_mode

log = structlog.get_logger()


class MigrationOrchestrator:
    """Upgrades the control plane once, then replaces every node pool one at a time.

    Any failure other than a pool definition deletion ends the run. Expected failures
    arrive as MigrationError, anything else propagates unchanged. Steps already applied
    stay applied. ``report`` reflects progress up to the failure.
    """

    def __init__(
        self,
        cluster: ClusterRef,
        aks_client: AzureAksClient,
        core_client: K8sCoreClient,
        settings: MigrationSettings,
        *,
        version_prompt: VersionPrompt,
        confirmation_prompt: ConfirmationPrompt,
    ) -> None:
        validate_readiness_mode(settings.readiness_mode)
        self._cluster = cluster
        self._aks = aks_client
        self.prerequisites = PrerequisiteChecker(core_client)
        self.version_resolver = VersionResolver(aks_client, version_prompt)
        self.confirmation_gate = ConfirmationGate(confirmation_prompt)
        self.control_plane = ControlPlaneUpgrader(aks_client)
        self.cloner = NodePoolCloner(aks_client)
        self.readiness = ReadinessWaiter(aks_client, core_client, settings)
        self.drainer = NodeDrainer(aks_client, core_client, settings)
        self.deleter = NodePoolDeleter(aks_client)
        self.report = MigrationReport(cluster=cluster.label)

    async def run(self, requested_version: str | None = None, force: bool = False) -> MigrationReport:
        structlog.contextvars.bind_contextvars(cluster=self._cluster.label)
        try:
            self.report.context = await self.prerequisites.check()
            version = await self.version_resolver.resolve(requested_version)
            self.report.target_version = version
            self.confirmation_gate.confirm(force)

            await self.control_plane.upgrade(version)
            self.report.control_plane_upgraded = True

            plans = await self._plan(version)
            for plan in plans:
                await self._replace_pool(plan)
        finally:
            structlog.contextvars.unbind_contextvars("cluster")

        log.info("migration_completed", pools=len(self.report.pools), version=self.report.target_version)
        return self.report

    async def _plan(self, version: str) -> list[MigrationPlan]:
        try:
            pools = await self._aks.list_node_pools()
        except Exception as exc:
            raise PoolListFailed(f"Listing node pools failed: {exc}") from exc
        plans = plan_migrations(pools, version)
        for plan in plans:
            self.report.pools.append(PoolMigrationResult(source_pool=plan.source_pool, target_pool=plan.target_pool))
        log.info("migration_planned", pools=[p.source_pool for p in plans])
        return plans

    async def _replace_pool(self, plan: MigrationPlan) -> None:
        result = next(r for r in self.report.pools if r.source_pool == plan.source_pool)
        log.info("pool_replacement_started", source=plan.source_pool, target=plan.target_pool)
        try:
            target = await self.cloner.clone(plan)
            await self.readiness.wait(target)
            await self.drainer.evacuate(plan.source_pool, result.nodes)
        except Exception as exc:
            result.outcome = "failed"
            result.errors.append(str(exc))
            raise

        delete_error = await self.deleter.delete(plan.source_pool)
        if delete_error is not None:
            result.errors.append(str(delete_error))
            result.outcome = "completed_with_errors"
        else:
            result.outcome = "completed"
        log.info("pool_replacement_finished", source=plan.source_pool, target=plan.target_pool, outcome=result.outcome)
