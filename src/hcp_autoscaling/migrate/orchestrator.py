"""Migrator: patch then verify each candidate, one at a time.

The batch is best-effort: a failed candidate is recorded and the next one
is processed.  Nothing is retried and nothing is rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from hcp_autoscaling.migrate.verifier import CancelEvent
from hcp_autoscaling.models import AuditInfo, MigrationResult, MigrationStatus

logger = logging.getLogger(__name__)

PatchFn = Callable[[AuditInfo], Any]
VerifyFn = Callable[[AuditInfo], Any]
StartHook = Callable[[int, int, AuditInfo], None]
ResultHook = Callable[[MigrationResult], None]


def _utc_timestamp() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class Migrator:
    """Sequential migration of hosted clusters.

    Lifecycle per candidate:
      1. Skip (failed) if the run has been cancelled
      2. Patch the ManifestWork on the service cluster
      3. Wait for the annotations to reach the management cluster
      4. Record a MigrationResult

    ``patch`` and ``verify`` signal failure by raising.
    """

    def __init__(
        self,
        patch: PatchFn,
        verify: VerifyFn,
        cancel_event: CancelEvent | None = None,
        on_start: StartHook | None = None,
        on_result: ResultHook | None = None,
        now: Callable[[], str] = _utc_timestamp,
    ) -> None:
        self._patch = patch
        self._verify = verify
        self._cancel = cancel_event
        self._on_start = on_start
        self._on_result = on_result
        self._now = now

    def migrate(self, candidates: Sequence[AuditInfo]) -> list[MigrationResult]:
        """Migrate *candidates* in the given order and return every outcome."""
        results: list[MigrationResult] = []
        total = len(candidates)
        for index, candidate in enumerate(candidates, start=1):
            if self._on_start is not None:
                self._on_start(index, total, candidate)
            result = self.migrate_cluster(candidate)
            results.append(result)
            if self._on_result is not None:
                self._on_result(result)
        return results

    def migrate_cluster(self, candidate: AuditInfo) -> MigrationResult:
        """Patch and verify one cluster. Never raises for per-cluster failures."""
        if self._cancel is not None and self._cancel.is_set():
            return self._failed(candidate, "migration cancelled before patching")

        logger.info("Patching ManifestWork for %s", candidate.cluster_id)
        try:
            self._patch(candidate)
        except Exception as exc:
            logger.warning("Patch failed for %s: %s", candidate.cluster_id, exc)
            return self._failed(candidate, f"failed to patch ManifestWork: {exc}")

        logger.info("Waiting for %s to sync", candidate.cluster_id)
        try:
            self._verify(candidate)
        except Exception as exc:
            logger.warning("Sync verification failed for %s: %s", candidate.cluster_id, exc)
            return self._failed(candidate, f"sync verification failed: {exc}")

        return MigrationResult(
            cluster_id=candidate.cluster_id,
            cluster_name=candidate.cluster_name,
            status=MigrationStatus.SUCCESS,
            verified_at=self._now(),
        )

    def _failed(self, candidate: AuditInfo, error: str) -> MigrationResult:
        return MigrationResult(
            cluster_id=candidate.cluster_id,
            cluster_name=candidate.cluster_name,
            status=MigrationStatus.FAILED,
            error=error,
        )


def migrate(
    candidates: Sequence[AuditInfo],
    patch_fn: PatchFn,
    verify_fn: VerifyFn,
    cancel_event: CancelEvent | None = None,
) -> list[MigrationResult]:
    """Convenience wrapper around ``Migrator(...).migrate(candidates)``."""
    return Migrator(patch_fn, verify_fn, cancel_event=cancel_event).migrate(candidates)
