"""Blue-green node pool upgrade: preflight, control plane, per-pool replacement."""

from nodepool_migrator.migration.orchestrator import MigrationOrchestrator
from nodepool_migrator.migration.planner import derive_pool_name, plan_migrations

__all__ = ["MigrationOrchestrator", "derive_pool_name", "plan_migrations"]
