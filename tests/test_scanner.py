"""Tests for the candidate scanner."""

from __future__ import annotations

import pytest

from hcp_autoscaling.audit.scanner import (
    AmbiguousRecordError,
    RecordNotFoundError,
    ResolutionError,
    Scanner,
    filter_namespaces,
    ready_candidates,
    resolve_record,
)
from hcp_autoscaling.clients.k8s import ClusterClientError
from hcp_autoscaling.models import (
    AUTOSCALING_ANNOTATION,
    CLUSTER_ID_LABEL,
    CLUSTER_SIZE_LABEL,
    SIZE_OVERRIDE_ANNOTATION,
    TOPOLOGY_ANNOTATION,
    Category,
    ClusterRecord,
)

CONFIGURED = {
    TOPOLOGY_ANNOTATION: "dedicated-request-serving-components",
    AUTOSCALING_ANNOTATION: "true",
}


def _hc(
    namespace: str,
    cluster_id: str,
    annotations: dict[str, str] | None = None,
    size: str = "m5.xlarge",
) -> ClusterRecord:
    return ClusterRecord(
        name=f"hc-{cluster_id}",
        namespace=namespace,
        labels={CLUSTER_ID_LABEL: cluster_id, CLUSTER_SIZE_LABEL: size},
        annotations=annotations or {},
    )


def _scanner(records: dict[str, list[ClusterRecord]], extra: list[str] | None = None) -> Scanner:
    def list_records(namespace: str) -> list[ClusterRecord]:
        value = records.get(namespace, [])
        if isinstance(value, Exception):
            raise value
        return value

    names = list(records) + (extra or [])
    return Scanner(lambda: names, list_records)


# --- filter_namespaces ---


class TestFilterNamespaces:
    def test_production_and_staging(self):
        names = [
            "ocm-production-abc123",
            "ocm-staging-xyz789",
            "ocm-other-namespace",
            "kube-system",
            "default",
        ]
        assert filter_namespaces(names) == ["ocm-production-abc123", "ocm-staging-xyz789"]

    @pytest.mark.parametrize(
        "name",
        [
            "ocm-production-abc123",
            "ocm-staging-ABC123xyz",
            "ocm-production-2o01jtlh4a3h7p5f04irugtiic86dh47",
        ],
    )
    def test_accepts(self, name: str):
        assert filter_namespaces([name]) == [name]

    @pytest.mark.parametrize(
        "name",
        [
            "ocm-production-abc123-extra",
            "ocm-production",
            "production-abc123",
            "ocm-staging-",
            "ocm-integration-abc123",
            "xocm-production-abc123",
            "ocm-production-abc_123",
        ],
    )
    def test_rejects(self, name: str):
        assert filter_namespaces([name]) == []

    def test_preserves_order(self):
        names = ["ocm-staging-b", "ocm-production-a", "ocm-staging-c"]
        assert filter_namespaces(names) == names


# --- resolve_record ---


class TestResolveRecord:
    def test_single(self):
        hc = _hc("ocm-production-a", "a")
        assert resolve_record("ocm-production-a", lambda ns: [hc]) is hc

    def test_none_found(self):
        with pytest.raises(RecordNotFoundError, match="no HostedCluster found"):
            resolve_record("ocm-production-a", lambda ns: [])

    def test_ambiguous(self):
        hcs = [_hc("ns", "a"), _hc("ns", "b"), _hc("ns", "c")]
        with pytest.raises(AmbiguousRecordError, match="found 3 HostedClusters, expected 1"):
            resolve_record("ns", lambda ns: hcs)

    def test_list_failure_is_resolution_error(self):
        def boom(ns: str) -> list[ClusterRecord]:
            raise ClusterClientError("K8s API error (403): Forbidden", status=403)

        with pytest.raises(ResolutionError, match="403"):
            resolve_record("ns", boom)

    def test_any_listing_error_becomes_resolution_error(self):
        def list_records(namespace: str) -> list[ClusterRecord]:
            raise ConnectionError("connection refused")

        with pytest.raises(ResolutionError, match="connection refused"):
            resolve_record("ocm-production-abc", list_records)


# --- Scanner.scan ---


class TestScan:
    def test_six_records_bucketed(self):
        records = {
            "ocm-production-a1": [_hc("ocm-production-a1", "a1", {SIZE_OVERRIDE_ANNOTATION: "m5xl"})],
            "ocm-production-a2": [
                _hc("ocm-production-a2", "a2", {SIZE_OVERRIDE_ANNOTATION: "", **CONFIGURED}),
            ],
            "ocm-production-b1": [_hc("ocm-production-b1", "b1")],
            "ocm-staging-b2": [_hc("ocm-staging-b2", "b2")],
            "ocm-staging-b3": [_hc("ocm-staging-b3", "b3", {"other": "x"})],
            "ocm-staging-c1": [_hc("ocm-staging-c1", "c1", CONFIGURED)],
        }
        result = _scanner(records).scan("mgmt-1")

        assert result.mgmt_cluster_id == "mgmt-1"
        assert len(result.needs_label_removal) == 2
        assert len(result.ready_for_migration) == 3
        assert len(result.already_configured) == 1
        assert result.total_scanned == 6
        assert result.errors == ()

        filtered = result.filter(Category.READY_FOR_MIGRATION)
        assert filtered.total_scanned == 3
        assert len(filtered.ready_for_migration) == 3
        assert filtered.needs_label_removal == ()
        assert filtered.already_configured == ()

    def test_entry_fields(self):
        records = {"ocm-production-abc": [_hc("ocm-production-abc", "abc", size="large")]}
        (info,) = _scanner(records).scan().ready_for_migration
        assert info.cluster_id == "abc"
        assert info.cluster_name == "hc-abc"
        assert info.namespace == "ocm-production-abc"
        assert info.current_size == "large"
        assert info.category == Category.READY_FOR_MIGRATION
        assert info.labels[CLUSTER_ID_LABEL] == "abc"

    def test_non_matching_namespaces_skipped(self):
        calls: list[str] = []

        def list_records(ns: str) -> list[ClusterRecord]:
            calls.append(ns)
            return [_hc(ns, ns)]

        scanner = Scanner(
            lambda: ["kube-system", "ocm-production-a", "ocm-production-a-extra"],
            list_records,
        )
        result = scanner.scan()
        assert calls == ["ocm-production-a"]
        assert result.total_scanned == 1
        assert result.errors == ()

    def test_errors_isolated(self):
        records = {
            "ocm-production-empty": [],
            "ocm-production-dup": [_hc("ocm-production-dup", "d1"), _hc("ocm-production-dup", "d2")],
            "ocm-production-denied": ClusterClientError("K8s API error (403): Forbidden", 403),
            "ocm-production-ok": [_hc("ocm-production-ok", "ok")],
        }
        result = _scanner(records).scan()

        assert result.total_scanned == 1
        assert [e.namespace for e in result.errors] == [
            "ocm-production-empty",
            "ocm-production-dup",
            "ocm-production-denied",
        ]
        assert result.errors[0].error == "no HostedCluster found"
        assert result.errors[1].error == "found 2 HostedClusters, expected 1"
        assert "403" in result.errors[2].error

    def test_transport_error_isolated(self):
        records = {
            "ocm-production-bad": ConnectionError("Max retries exceeded"),
            "ocm-production-good": [_hc("ocm-production-good", "good")],
        }
        result = _scanner(records).scan()

        assert result.total_scanned == 1
        assert result.ready_for_migration[0].cluster_id == "good"
        assert len(result.errors) == 1
        assert result.errors[0].namespace == "ocm-production-bad"
        assert result.errors[0].error == "Max retries exceeded"

    def test_decode_error_isolated(self):
        def list_records(namespace: str) -> list[ClusterRecord]:
            if namespace == "ocm-production-bad":
                return [ClusterRecord.from_manifest({"metadata": {"name": 42}})]
            return [_hc(namespace, "ok")]

        scanner = Scanner(lambda: ["ocm-production-bad", "ocm-production-ok"], list_records)
        result = scanner.scan()

        assert result.total_scanned == 1
        assert [e.namespace for e in result.errors] == ["ocm-production-bad"]

    def test_filter_preserves_errors(self):
        records = {
            "ocm-production-empty": [],
            "ocm-production-x": [_hc("ocm-production-x", "x", {SIZE_OVERRIDE_ANNOTATION: "m5xl"})],
        }
        result = _scanner(records).scan().filter(Category.NEEDS_REMOVAL)
        assert result.total_scanned == 1
        assert len(result.errors) == 1

    def test_missing_identity_label_reported_empty(self):
        record = ClusterRecord(name="hc", namespace="ocm-staging-q")
        result = _scanner({"ocm-staging-q": [record]}).scan()
        (info,) = result.ready_for_migration
        assert info.cluster_id == ""

    def test_namespace_listing_failure_propagates(self):
        def boom() -> list[str]:
            raise ClusterClientError("K8s API error (500): Internal")

        with pytest.raises(ClusterClientError):
            Scanner(boom, lambda ns: []).scan()

    def test_rescan_sees_fresh_data(self):
        state = {"annotations": {}}

        def list_records(ns: str) -> list[ClusterRecord]:
            return [_hc(ns, "a", dict(state["annotations"]))]

        scanner = Scanner(lambda: ["ocm-production-a"], list_records)
        assert scanner.scan().total_scanned == 1
        assert len(scanner.scan().ready_for_migration) == 1
        state["annotations"] = CONFIGURED
        assert len(scanner.scan().already_configured) == 1


class TestReadyCandidates:
    def test_sorted_ready_only(self):
        records = {
            "ocm-production-z": [_hc("ocm-production-z", "zzz")],
            "ocm-production-a": [_hc("ocm-production-a", "aaa")],
            "ocm-production-c": [_hc("ocm-production-c", "ccc", CONFIGURED)],
            "ocm-production-o": [_hc("ocm-production-o", "ooo", {SIZE_OVERRIDE_ANNOTATION: "x"})],
        }
        candidates = ready_candidates(_scanner(records).scan())
        assert [c.cluster_id for c in candidates] == ["aaa", "zzz"]
