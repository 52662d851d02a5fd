"""hcp-node-autoscaling CLI: audit and migrate hosted clusters to node autoscaling.

Commands:
    audit       Categorize hosted clusters on a management cluster
    migrate     Patch ManifestWorks on a service cluster and verify the sync
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterator
from functools import partial

import click
import yaml

from hcp_autoscaling import __version__
from hcp_autoscaling.audit.classifier import is_fully_configured
from hcp_autoscaling.audit.scanner import Scanner, ready_candidates
from hcp_autoscaling.cli.render import (
    OUTPUT_FORMATS,
    migration_results_json,
    render_audit,
    render_candidates,
    render_migration_summary,
)
from hcp_autoscaling.clients.k8s import (
    ClusterClientError,
    ManagementClusterClient,
    ServiceClusterClient,
    SetupError,
    validate_cluster_key,
)
from hcp_autoscaling.config import CONFIG_ENV_VAR, AutoscalingConfig, load_config
from hcp_autoscaling.migrate.orchestrator import Migrator
from hcp_autoscaling.migrate.verifier import wait_until_synced
from hcp_autoscaling.models import AuditInfo, Category, MigrationResult

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_cfg(path: str | None) -> AutoscalingConfig:
    """Load config; an explicit path (flag or env) must exist, discovery never errors."""
    path = path or os.environ.get(CONFIG_ENV_VAR) or None
    if path is None:
        try:
            return load_config()
        except Exception:
            return AutoscalingConfig()
    try:
        return load_config(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


def _or(explicit: str | None, cfg_val: str | None, fallback: str | None) -> str | None:
    """Return first non-None value: explicit CLI flag > config > fallback."""
    return explicit or cfg_val or fallback


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _connect_management(kubeconfig: str | None, context: str | None) -> ManagementClusterClient:
    """Build the management cluster client and confirm it runs HyperShift."""
    mgmt = ManagementClusterClient(kubeconfig=kubeconfig, context=context)
    try:
        is_mc = mgmt.is_management_cluster()
    except ClusterClientError as e:
        raise SetupError(f"failed to verify if cluster is a management cluster: {e}") from e
    if not is_mc:
        raise SetupError(f"cluster {context or 'in current context'} is not a management cluster")
    return mgmt


@contextlib.contextmanager
def _cancel_on_interrupt(event: threading.Event) -> Iterator[None]:
    """Set *event* on SIGINT instead of raising KeyboardInterrupt."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: object) -> None:
        click.echo("\nInterrupt received, cancelling migration...", err=True)
        event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """HCP node autoscaling audit and migration tool.

    Use the audit subcommand to analyze clusters and the migrate subcommand
    to perform the actual migration.
    """


# --- audit command ---


@cli.command()
@click.option("--mgmt-cluster-id", required=True, help="The management cluster ID to audit")
@click.option(
    "--output", "-o", type=click.Choice(OUTPUT_FORMATS), default="text",
    help="Output format",
)
@click.option(
    "--show-only", type=click.Choice([c.value for c in Category]), default=None,
    help="Only show clusters in this category",
)
@click.option("--no-headers", is_flag=True, help="Skip headers in text and csv output")
@click.option("--kubeconfig", default=None, help="Path to kubeconfig file")
@click.option(
    "--mgmt-context", default=None,
    help="Kube context of the management cluster (default: the cluster ID)",
)
@click.option("--config", "config_path", default=None, help="Path to hcp-autoscaling.yaml")
@click.option("--log-level", default=None, help="Logging level (default WARNING)")
def audit(
    mgmt_cluster_id: str,
    output: str,
    show_only: str | None,
    no_headers: bool,
    kubeconfig: str | None,
    mgmt_context: str | None,
    config_path: str | None,
    log_level: str | None,
) -> None:
    """Audit hosted clusters for autoscaling migration readiness.

    \b
    Clusters are categorized into:
    - Group A: needs annotation removal (has cluster-size-override)
    - Group B: ready for migration (missing autoscaling annotations)
    - Already configured (autoscaling annotations set)
    """
    cfg = _resolve_cfg(config_path)
    _configure_logging(log_level or cfg.log_level)

    try:
        validate_cluster_key(mgmt_cluster_id)
        mgmt = _connect_management(
            _or(kubeconfig, cfg.kubeconfig, None),
            _or(mgmt_context, cfg.management_context, mgmt_cluster_id),
        )
    except SetupError as e:
        _fail(str(e))

    try:
        click.echo(f"Auditing management cluster: {mgmt_cluster_id}", err=True)
        scanner = Scanner(mgmt.list_namespaces, mgmt.list_hosted_clusters)
        try:
            result = scanner.scan(mgmt_cluster_id)
        except ClusterClientError as e:
            _fail(f"failed to list namespaces: {e}")
    finally:
        mgmt.close()

    result = result.filter(Category(show_only) if show_only else None)
    click.echo(render_audit(result, output=output, headers=not no_headers))


# --- migrate command ---


@cli.command()
@click.option(
    "--service-cluster-id", required=True,
    help="The service cluster ID where ManifestWork resources exist",
)
@click.option("--mgmt-cluster-id", required=True, help="The management cluster ID to migrate")
@click.option("--dry-run", is_flag=True, help="Preview changes without applying them")
@click.option(
    "--skip-confirmation", is_flag=True,
    help="Skip confirmation prompt (use with caution)",
)
@click.option("--kubeconfig", default=None, help="Path to kubeconfig file")
@click.option(
    "--mgmt-context", default=None,
    help="Kube context of the management cluster (default: the cluster ID)",
)
@click.option(
    "--service-context", default=None,
    help="Kube context of the service cluster (default: the cluster ID)",
)
@click.option(
    "--manifestwork-namespace", default=None,
    help="Namespace of the ManifestWorks (default: the management cluster ID)",
)
@click.option("--poll-interval", type=float, default=None, help="Seconds between sync checks")
@click.option("--sync-timeout", type=float, default=None, help="Seconds to wait for each sync")
@click.option("--json-output", is_flag=True, help="Print migration results as JSON")
@click.option("--config", "config_path", default=None, help="Path to hcp-autoscaling.yaml")
@click.option("--log-level", default=None, help="Logging level (default WARNING)")
def migrate(
    service_cluster_id: str,
    mgmt_cluster_id: str,
    dry_run: bool,
    skip_confirmation: bool,
    kubeconfig: str | None,
    mgmt_context: str | None,
    service_context: str | None,
    manifestwork_namespace: str | None,
    poll_interval: float | None,
    sync_timeout: float | None,
    json_output: bool,
    config_path: str | None,
    log_level: str | None,
) -> None:
    """Enable autoscaling for hosted clusters that are ready.

    \b
    This command will:
    1. Audit the management cluster to find clusters ready for migration
    2. Display the list and ask for confirmation
    3. Patch ManifestWork resources on the service cluster
    4. Verify the annotations are synced to the management cluster
    5. Report results
    """
    cfg = _resolve_cfg(config_path)
    _configure_logging(log_level or cfg.log_level)
    echo = partial(click.echo, err=json_output)

    interval = poll_interval if poll_interval is not None else cfg.poll_interval
    timeout = sync_timeout if sync_timeout is not None else cfg.sync_timeout
    if interval <= 0 or timeout <= 0:
        _fail("--poll-interval and --sync-timeout must be positive")

    kubeconfig = _or(kubeconfig, cfg.kubeconfig, None)
    namespace = _or(manifestwork_namespace, cfg.manifestwork_namespace, mgmt_cluster_id)

    try:
        validate_cluster_key(service_cluster_id)
        validate_cluster_key(mgmt_cluster_id)
        mgmt = _connect_management(
            kubeconfig, _or(mgmt_context, cfg.management_context, mgmt_cluster_id),
        )
        service = ServiceClusterClient(
            namespace=namespace,
            kubeconfig=kubeconfig,
            context=_or(service_context, cfg.service_context, service_cluster_id),
        )
        service.connect()
    except SetupError as e:
        _fail(f"initialization failed: {e}")

    echo(f"Service Cluster: {service_cluster_id}")
    echo(f"Management Cluster: {mgmt_cluster_id}")
    echo(f"ManifestWork Namespace: {namespace}\n")

    try:
        _run_migration(
            mgmt, service, mgmt_cluster_id,
            dry_run=dry_run,
            skip_confirmation=skip_confirmation,
            poll_interval=interval,
            sync_timeout=timeout,
            json_output=json_output,
        )
    finally:
        mgmt.close()
        service.close()


def _run_migration(
    mgmt: ManagementClusterClient,
    service: ServiceClusterClient,
    mgmt_cluster_id: str,
    *,
    dry_run: bool,
    skip_confirmation: bool,
    poll_interval: float,
    sync_timeout: float,
    json_output: bool,
) -> None:
    echo = partial(click.echo, err=json_output)

    scanner = Scanner(mgmt.list_namespaces, mgmt.list_hosted_clusters)
    try:
        result = scanner.scan(mgmt_cluster_id)
    except ClusterClientError as e:
        _fail(f"failed to get migration candidates: {e}")

    for err in result.errors:
        click.echo(f"Warning: failed to audit namespace {err.namespace}: {err.error}", err=True)

    candidates = ready_candidates(result)
    if not candidates:
        echo("No clusters found ready for migration")
        return

    echo(render_candidates(candidates) + "\n")

    if dry_run:
        echo("[DRY RUN] No changes will be applied")
        return

    if not skip_confirmation and not click.confirm(
        "Do you want to continue?", default=False, err=True,
    ):
        _fail("migration cancelled by user")

    cancel = threading.Event()

    def patch(candidate: AuditInfo) -> None:
        service.patch_hosted_cluster(candidate.cluster_id)
        echo("  - Patched ManifestWork on service cluster")

    def verify(candidate: AuditInfo) -> None:
        echo(f"  - Waiting for sync (timeout: {sync_timeout:g}s)...")
        wait_until_synced(
            lambda: mgmt.get_hosted_cluster(candidate.namespace, candidate.cluster_name),
            is_fully_configured,
            poll_interval=poll_interval,
            timeout=sync_timeout,
            cancel_event=cancel,
        )
        echo("  - Verified: Annotations synced to management cluster")

    def on_start(index: int, total: int, candidate: AuditInfo) -> None:
        echo(f"\n[{index}/{total}] Migrating cluster {candidate.cluster_name} ({candidate.cluster_id})...")

    def on_result(res: MigrationResult) -> None:
        if res.succeeded:
            echo(click.style(f"Successfully migrated {res.cluster_id}", fg="green"))
        else:
            echo(click.style(f"Failed to migrate {res.cluster_id}: {res.error}", fg="red"))

    migrator = Migrator(
        patch, verify, cancel_event=cancel, on_start=on_start, on_result=on_result,
    )
    with _cancel_on_interrupt(cancel):
        results = migrator.migrate(candidates)

    echo("\n" + render_migration_summary(results))
    if json_output:
        click.echo(migration_results_json(results))

    if any(not r.succeeded for r in results):
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
