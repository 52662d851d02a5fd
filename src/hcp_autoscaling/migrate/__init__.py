"""Migration engine: manifest patching, sync verification and orchestration."""

from hcp_autoscaling.migrate.orchestrator import Migrator, migrate
from hcp_autoscaling.migrate.patcher import ManifestNotFoundError, patch_manifests
from hcp_autoscaling.migrate.verifier import (
    SyncCancelledError,
    SyncError,
    SyncTimeoutError,
    wait_until_synced,
)

__all__ = [
    "ManifestNotFoundError",
    "Migrator",
    "SyncCancelledError",
    "SyncError",
    "SyncTimeoutError",
    "migrate",
    "patch_manifests",
    "wait_until_synced",
]
