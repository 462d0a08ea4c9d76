"""Migration error taxonomy.

Every failure names the stage it happened in and the resource it concerns so
the operator knows what was left applied to the cluster.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base class for every failure that aborts (or is reported by) a run."""

    stage = "migration"

    def __init__(self, message: str, *, resource: str | None = None) -> None:
        super().__init__(message)
        self.resource = resource


class NoActiveContext(MigrationError):
    stage = "prerequisites"


class UpgradeVersionsUnavailable(MigrationError):
    stage = "version-resolution"


class VersionNotSelected(MigrationError):
    stage = "version-resolution"


class PreconditionsUnconfirmed(MigrationError):
    stage = "confirmation"


class ControlPlaneUpgradeFailed(MigrationError):
    stage = "control-plane-upgrade"


class PoolListFailed(MigrationError):
    stage = "pool-listing"


class DuplicateDerivedName(MigrationError):
    """Two pools of the run would get the same replacement name."""

    stage = "planning"


class PoolNameCollision(MigrationError):
    """A replacement name is already taken by an existing pool."""

    stage = "planning"


class InvalidPoolName(MigrationError):
    stage = "planning"


class PoolCloneFailed(MigrationError):
    stage = "pool-clone"


class PoolNotReady(MigrationError):
    stage = "readiness-wait"


class EmptyPool(MigrationError):
    stage = "node-listing"


class NodeCordonFailed(MigrationError):
    stage = "cordon"


class NodeDrainFailed(MigrationError):
    stage = "drain"


class NodeDeleteFailed(MigrationError):
    stage = "node-delete"


class PoolEvacuationFailed(MigrationError):
    """One or more nodes failed during parallel evacuation."""

    stage = "evacuation"

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        failures: list[MigrationError] | None = None,
    ) -> None:
        super().__init__(message, resource=resource)
        self.failures = failures or []


class PoolDeleteFailed(MigrationError):
    """Reported but never raised out of the orchestrator."""

    stage = "pool-delete"
