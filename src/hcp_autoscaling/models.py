"""Core data models for hcp-node-autoscaling.

Defines the schemas for:
- Hosted cluster records read from a management cluster
- Audit entries and the bucketed audit result
- Per-cluster migration outcomes
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Well-known labels and annotations ---

CLUSTER_ID_LABEL = "api.openshift.com/id"
CLUSTER_SIZE_LABEL = "hypershift.openshift.io/hosted-cluster-size"

SIZE_OVERRIDE_ANNOTATION = "hypershift.openshift.io/cluster-size-override"
TOPOLOGY_ANNOTATION = "hypershift.openshift.io/topology"
AUTOSCALING_ANNOTATION = "hypershift.openshift.io/resource-based-cp-auto-scaling"

TOPOLOGY_VALUE = "dedicated-request-serving-components"
AUTOSCALING_VALUE = "true"

# Annotations written by the migration, in the order they are applied.
REQUIRED_ANNOTATIONS: dict[str, str] = {
    TOPOLOGY_ANNOTATION: TOPOLOGY_VALUE,
    AUTOSCALING_ANNOTATION: AUTOSCALING_VALUE,
}

# --- Enums ---


class Category(enum.StrEnum):
    NEEDS_REMOVAL = "needs-removal"
    READY_FOR_MIGRATION = "ready-for-migration"
    ALREADY_CONFIGURED = "already-configured"


class MigrationStatus(enum.StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


# --- Cluster records ---


class ClusterRecord(BaseModel):
    """A HostedCluster as seen on a management cluster.

    Only the metadata this tool reasons about is kept. ``annotations`` is
    never ``None``; a missing map is normalised to an empty one.
    """

    name: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @property
    def cluster_id(self) -> str:
        return self.labels.get(CLUSTER_ID_LABEL, "")

    @property
    def current_size(self) -> str:
        return self.labels.get(CLUSTER_SIZE_LABEL, "")

    @classmethod
    def from_manifest(cls, obj: dict[str, Any]) -> ClusterRecord:
        """Build a record from a HostedCluster object as returned by the API."""
        metadata = obj.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            labels=metadata.get("labels") or {},
            annotations=metadata.get("annotations") or {},
        )


# --- Audit ---


class AuditInfo(BaseModel):
    """One classified hosted cluster in an audit."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str
    cluster_name: str
    namespace: str
    current_size: str
    category: Category
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class AuditError(BaseModel):
    """A namespace that could not be audited."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    error: str


class AuditResult(BaseModel):
    """Snapshot of one scan of a management cluster.

    Built once per scan and never mutated; ``filter()`` returns a new result.
    """

    model_config = ConfigDict(frozen=True)

    mgmt_cluster_id: str = ""
    total_scanned: int = 0
    needs_label_removal: tuple[AuditInfo, ...] = ()
    ready_for_migration: tuple[AuditInfo, ...] = ()
    already_configured: tuple[AuditInfo, ...] = ()
    errors: tuple[AuditError, ...] = ()

    def bucket(self, category: Category) -> tuple[AuditInfo, ...]:
        """Return the entries classified as *category*."""
        return {
            Category.NEEDS_REMOVAL: self.needs_label_removal,
            Category.READY_FOR_MIGRATION: self.ready_for_migration,
            Category.ALREADY_CONFIGURED: self.already_configured,
        }[category]

    def filter(self, category: Category | None) -> AuditResult:
        """Keep only the *category* bucket; errors are preserved as-is.

        ``None`` returns the result unchanged.
        """
        if category is None:
            return self
        entries = self.bucket(Category(category))
        return AuditResult(
            mgmt_cluster_id=self.mgmt_cluster_id,
            total_scanned=len(entries),
            needs_label_removal=entries if category == Category.NEEDS_REMOVAL else (),
            ready_for_migration=entries if category == Category.READY_FOR_MIGRATION else (),
            already_configured=entries if category == Category.ALREADY_CONFIGURED else (),
            errors=self.errors,
        )


# --- Migration ---


class MigrationResult(BaseModel):
    """Outcome of migrating a single hosted cluster."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str
    cluster_name: str
    status: MigrationStatus
    error: str | None = None
    verified_at: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == MigrationStatus.SUCCESS
