"""hcp-node-autoscaling: audit and migrate hosted clusters to node autoscaling."""

__version__ = "0.1.0"

from hcp_autoscaling.audit.classifier import classify, is_fully_configured
from hcp_autoscaling.audit.scanner import (
    AmbiguousRecordError,
    RecordNotFoundError,
    ResolutionError,
    Scanner,
    filter_namespaces,
    ready_candidates,
)
from hcp_autoscaling.config import AutoscalingConfig, find_config, load_config
from hcp_autoscaling.migrate import (
    ManifestNotFoundError,
    Migrator,
    SyncCancelledError,
    SyncError,
    SyncTimeoutError,
    migrate,
    patch_manifests,
    wait_until_synced,
)
from hcp_autoscaling.models import (
    AuditError,
    AuditInfo,
    AuditResult,
    Category,
    ClusterRecord,
    MigrationResult,
    MigrationStatus,
)

__all__ = [
    "AmbiguousRecordError",
    "AuditError",
    "AuditInfo",
    "AuditResult",
    "AutoscalingConfig",
    "Category",
    "ClusterRecord",
    "ManifestNotFoundError",
    "MigrationResult",
    "MigrationStatus",
    "Migrator",
    "RecordNotFoundError",
    "ResolutionError",
    "Scanner",
    "SyncCancelledError",
    "SyncError",
    "SyncTimeoutError",
    "classify",
    "filter_namespaces",
    "find_config",
    "is_fully_configured",
    "load_config",
    "migrate",
    "patch_manifests",
    "ready_candidates",
    "wait_until_synced",
    "__version__",
]
