"""Migration-readiness classification for hosted clusters.

Rules, first match wins:

1. ``cluster-size-override`` present (any value) -> needs-removal
2. topology and autoscaling annotations both set correctly -> already-configured
3. anything else -> ready-for-migration

Missing annotations are treated as unsatisfied, never as errors.
"""

from __future__ import annotations

from hcp_autoscaling.models import (
    AUTOSCALING_ANNOTATION,
    AUTOSCALING_VALUE,
    SIZE_OVERRIDE_ANNOTATION,
    TOPOLOGY_ANNOTATION,
    TOPOLOGY_VALUE,
    Category,
    ClusterRecord,
)


def is_fully_configured(record: ClusterRecord) -> bool:
    """True when both autoscaling annotations carry their required values.

    Shared by ``classify`` and the sync verifier.
    """
    annotations = record.annotations or {}
    return (
        annotations.get(TOPOLOGY_ANNOTATION) == TOPOLOGY_VALUE
        and annotations.get(AUTOSCALING_ANNOTATION) == AUTOSCALING_VALUE
    )


def classify(record: ClusterRecord) -> Category:
    """Determine the migration category for a hosted cluster."""
    annotations = record.annotations or {}
    if SIZE_OVERRIDE_ANNOTATION in annotations:
        return Category.NEEDS_REMOVAL
    if is_fully_configured(record):
        return Category.ALREADY_CONFIGURED
    return Category.READY_FOR_MIGRATION
