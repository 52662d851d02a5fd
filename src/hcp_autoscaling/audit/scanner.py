"""Candidate scanner: classifies every hosted cluster on a management cluster.

Each OCM namespace (``ocm-production-<id>`` / ``ocm-staging-<id>``) is
expected to hold exactly one HostedCluster.  Namespaces that cannot be
resolved are recorded as errors in the result; they never abort the scan.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable

from hcp_autoscaling.audit.classifier import classify
from hcp_autoscaling.models import AuditError, AuditInfo, AuditResult, Category, ClusterRecord

logger = logging.getLogger(__name__)

OCM_NAMESPACE_PATTERN = re.compile(r"^ocm-(production|staging)-[a-zA-Z0-9]+$")


class ResolutionError(Exception):
    """Raised when a namespace does not resolve to exactly one HostedCluster."""


class RecordNotFoundError(ResolutionError):
    """The namespace holds no HostedCluster."""


class AmbiguousRecordError(ResolutionError):
    """The namespace holds more than one HostedCluster."""


def filter_namespaces(
    names: Iterable[str],
    pattern: re.Pattern[str] = OCM_NAMESPACE_PATTERN,
) -> list[str]:
    """Return the names matching *pattern*, preserving order."""
    return [name for name in names if pattern.fullmatch(name)]


def resolve_record(
    namespace: str,
    list_records: Callable[[str], list[ClusterRecord]],
) -> ClusterRecord:
    """Return the single HostedCluster in *namespace*."""
    try:
        records = list_records(namespace)
    except Exception as exc:
        # Transport and decode failures are as namespace-local as API errors.
        raise ResolutionError(str(exc) or type(exc).__name__) from exc

    if not records:
        raise RecordNotFoundError("no HostedCluster found")
    if len(records) > 1:
        raise AmbiguousRecordError(
            f"found {len(records)} HostedClusters, expected 1"
        )
    return records[0]


def to_audit_info(record: ClusterRecord, namespace: str) -> AuditInfo:
    return AuditInfo(
        cluster_id=record.cluster_id,
        cluster_name=record.name,
        namespace=namespace,
        current_size=record.current_size,
        category=classify(record),
        labels=dict(record.labels or {}),
        annotations=dict(record.annotations or {}),
    )


class Scanner:
    """Enumerate, resolve and classify hosted clusters.

    Args:
        list_namespaces: Returns every namespace name on the management cluster.
        list_records: Returns the HostedClusters in one namespace.
        pattern: Namespace filter; non-matching namespaces are skipped silently.
    """

    def __init__(
        self,
        list_namespaces: Callable[[], list[str]],
        list_records: Callable[[str], list[ClusterRecord]],
        pattern: re.Pattern[str] = OCM_NAMESPACE_PATTERN,
    ) -> None:
        self._list_namespaces = list_namespaces
        self._list_records = list_records
        self._pattern = pattern

    def namespaces(self) -> list[str]:
        """Namespaces eligible for auditing."""
        return filter_namespaces(self._list_namespaces(), self._pattern)

    def audit_namespace(self, namespace: str) -> AuditInfo:
        """Classify the HostedCluster in *namespace*.

        Raises ResolutionError when the namespace is empty or ambiguous.
        """
        record = resolve_record(namespace, self._list_records)
        return to_audit_info(record, namespace)

    def scan(self, mgmt_cluster_id: str = "") -> AuditResult:
        """Audit every eligible namespace and bucket the results."""
        buckets: dict[Category, list[AuditInfo]] = {c: [] for c in Category}
        errors: list[AuditError] = []

        namespaces = self.namespaces()
        logger.info("Scanning %d OCM namespaces", len(namespaces))

        for namespace in namespaces:
            try:
                info = self.audit_namespace(namespace)
            except ResolutionError as exc:
                logger.warning("Failed to audit namespace %s: %s", namespace, exc)
                errors.append(AuditError(namespace=namespace, error=str(exc)))
                continue
            buckets[info.category].append(info)

        return AuditResult(
            mgmt_cluster_id=mgmt_cluster_id,
            total_scanned=sum(len(b) for b in buckets.values()),
            needs_label_removal=tuple(buckets[Category.NEEDS_REMOVAL]),
            ready_for_migration=tuple(buckets[Category.READY_FOR_MIGRATION]),
            already_configured=tuple(buckets[Category.ALREADY_CONFIGURED]),
            errors=tuple(errors),
        )


def ready_candidates(result: AuditResult) -> list[AuditInfo]:
    """Clusters ready for migration, sorted by cluster ID."""
    return sorted(result.ready_for_migration, key=lambda c: c.cluster_id)
