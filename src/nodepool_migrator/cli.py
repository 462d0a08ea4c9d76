"""Command line interface for operator-driven node pool upgrades."""

from __future__ import annotations

import asyncio

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nodepool_migrator.clients.azure_aks import AzureAksClient
from nodepool_migrator.clients.k8s_core import K8sCoreClient
from nodepool_migrator.config import ClusterRef, build_cluster_ref, get_settings, load_cluster_map, resolve_cluster
from nodepool_migrator.errors import MigrationError
from nodepool_migrator.logs import configure_logging
from nodepool_migrator.migration import MigrationOrchestrator, plan_migrations
from nodepool_migrator.models import MigrationReport
from nodepool_migrator.validation import validate_kubernetes_version

app = typer.Typer(
    name="nodepool-migrator",
    help="Upgrade an AKS cluster by replacing every node pool with a twin at the new version",
    no_args_is_help=True,
)

console = Console()
log = structlog.get_logger()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug detail such as node state changes"),
) -> None:
    configure_logging(verbose)


def _cluster_ref(
    cluster_id: str | None,
    cluster_name: str | None,
    resource_group: str | None,
    subscription_id: str | None,
    context: str | None,
) -> ClusterRef:
    """Resolve the target cluster from clusters.yaml or from flags, prompting for what is missing."""
    try:
        if cluster_id:
            load_cluster_map()
            return resolve_cluster(cluster_id)
        name = cluster_name or typer.prompt("Cluster name")
        group = resource_group or typer.prompt("Resource group")
        return build_cluster_ref(name, group, subscription_id, context)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None


def _print_versions(profile: dict) -> None:
    table = Table(title=f"Control plane {profile.get('control_plane_version') or 'unknown'}")
    table.add_column("Available upgrades", style="cyan")
    for version in profile.get("control_plane_upgrades", []):
        table.add_row(version)
    console.print(table)


def _print_failure(report: MigrationReport, message: str) -> None:
    for line in report.summary_lines():
        console.print(line)
    console.print(f"[red]{escape(message)}[/red]")
    if report.completed_pools:
        console.print(f"Pools already replaced: {', '.join(report.completed_pools)}")


def _prompt_version(available: list[str]) -> str:
    table = Table()
    table.add_column("Available upgrades", style="cyan")
    for version in available:
        table.add_row(version)
    console.print(table)
    return typer.prompt("Target Kubernetes version", default="", show_default=False)


def _prompt_confirmation(message: str) -> str:
    return typer.prompt(message, default="", show_default=False)


_CLUSTER_ID = typer.Option(None, "--cluster-id", "-c", help="Cluster ID from clusters.yaml")
_CLUSTER_NAME = typer.Option(None, "--cluster-name", "-n", help="AKS cluster name")
_RESOURCE_GROUP = typer.Option(None, "--resource-group", "-g", help="Resource group of the cluster")
_SUBSCRIPTION = typer.Option(None, "--subscription-id", help="Subscription ID (default: AZURE_SUBSCRIPTION_ID)")
_CONTEXT = typer.Option(None, "--context", help="Kubeconfig context (default: current context)")


@app.command()
def migrate(
    cluster_id: str | None = _CLUSTER_ID,
    cluster_name: str | None = _CLUSTER_NAME,
    resource_group: str | None = _RESOURCE_GROUP,
    subscription_id: str | None = _SUBSCRIPTION,
    context: str | None = _CONTEXT,
    kubernetes_version: str | None = typer.Option(
        None, "--kubernetes-version", "-k", help="Target version (default: choose from available upgrades)"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the preconditions confirmation"),
) -> None:
    """Upgrade the control plane, then replace every node pool one at a time."""
    cluster = _cluster_ref(cluster_id, cluster_name, resource_group, subscription_id, context)
    try:
        orchestrator = MigrationOrchestrator(
            cluster,
            AzureAksClient(cluster),
            K8sCoreClient(cluster),
            get_settings(),
            version_prompt=_prompt_version,
            confirmation_prompt=_prompt_confirmation,
        )
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from None

    try:
        report = asyncio.run(orchestrator.run(kubernetes_version, force))
    except MigrationError as exc:
        log.error("migration_failed", stage=exc.stage, resource=exc.resource, error=str(exc))
        _print_failure(orchestrator.report, f"Failed during {exc.stage}: {exc}")
        raise typer.Exit(code=1) from None
    except Exception as exc:
        log.error("migration_failed", stage="unexpected", error=str(exc))
        _print_failure(orchestrator.report, f"Unexpected error: {exc!r}")
        raise typer.Exit(code=1) from None

    for line in report.summary_lines():
        console.print(line)
    console.print(f"[green]Upgrade of {cluster.label} to {report.target_version} complete[/green]")


@app.command()
def plan(
    cluster_id: str | None = _CLUSTER_ID,
    cluster_name: str | None = _CLUSTER_NAME,
    resource_group: str | None = _RESOURCE_GROUP,
    subscription_id: str | None = _SUBSCRIPTION,
    kubernetes_version: str = typer.Option(..., "--kubernetes-version", "-k", help="Target version"),
) -> None:
    """Show which replacement pools a migration would create, without changing anything."""
    cluster = _cluster_ref(cluster_id, cluster_name, resource_group, subscription_id, None)
    try:
        validate_kubernetes_version(kubernetes_version)
        pools = asyncio.run(AzureAksClient(cluster).list_node_pools())
        plans = plan_migrations(pools, kubernetes_version)
    except (MigrationError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None
    except Exception as exc:
        log.error("plan_failed", cluster=cluster.label, error=str(exc))
        raise typer.Exit(code=1) from None

    table = Table(title=f"{cluster.label} -> {kubernetes_version}")
    table.add_column("Source pool")
    table.add_column("Mode")
    table.add_column("Replacement pool", style="cyan")
    for item in plans:
        table.add_row(item.source_pool, item.mode, item.target_pool)
    console.print(table)


@app.command()
def versions(
    cluster_id: str | None = _CLUSTER_ID,
    cluster_name: str | None = _CLUSTER_NAME,
    resource_group: str | None = _RESOURCE_GROUP,
    subscription_id: str | None = _SUBSCRIPTION,
) -> None:
    """List the versions the control plane can upgrade to."""
    cluster = _cluster_ref(cluster_id, cluster_name, resource_group, subscription_id, None)
    try:
        profile = asyncio.run(AzureAksClient(cluster).get_upgrade_profile())
    except Exception as exc:
        log.error("versions_failed", cluster=cluster.label, error=str(exc))
        raise typer.Exit(code=1) from None
    _print_versions(profile)


if __name__ == "__main__":
    app()
