"""Tests for HostedCluster manifest patching."""

from __future__ import annotations

import json

import pytest

from hcp_autoscaling.migrate.patcher import (
    ManifestNotFoundError,
    apply_annotations,
    find_hosted_cluster,
    patch_manifests,
)

TOPOLOGY = "hypershift.openshift.io/topology"
AUTOSCALING = "hypershift.openshift.io/resource-based-cp-auto-scaling"


def _doc(kind: str, name: str = "x", annotations: dict[str, str] | None = None) -> str:
    metadata: dict = {"name": name, "namespace": "ocm-production-abc"}
    if annotations is not None:
        metadata["annotations"] = annotations
    return json.dumps({"apiVersion": "v1", "kind": kind, "metadata": metadata})


NAMESPACE = _doc("Namespace", "ocm-production-abc")
SECRET = _doc("Secret", "pull-secret")


class TestPatchManifests:
    def test_sets_both_annotations(self):
        patched = patch_manifests([NAMESPACE, _doc("HostedCluster", "hc"), SECRET])
        hc = json.loads(patched[1])
        assert hc["metadata"]["annotations"] == {
            TOPOLOGY: "dedicated-request-serving-components",
            AUTOSCALING: "true",
        }

    def test_other_elements_untouched(self):
        manifests = [NAMESPACE, _doc("HostedCluster"), SECRET]
        patched = patch_manifests(manifests)
        assert patched[0] is NAMESPACE
        assert patched[2] is SECRET
        assert len(patched) == 3

    def test_input_not_mutated(self):
        manifests = [_doc("HostedCluster")]
        original = list(manifests)
        patch_manifests(manifests)
        assert manifests == original

    def test_preserves_existing_annotations(self):
        hc = _doc("HostedCluster", annotations={"example.com/owner": "sre"})
        annotations = json.loads(patch_manifests([hc])[0])["metadata"]["annotations"]
        assert annotations["example.com/owner"] == "sre"
        assert annotations[AUTOSCALING] == "true"

    def test_overwrites_existing_values(self):
        hc = _doc("HostedCluster", annotations={TOPOLOGY: "shared", AUTOSCALING: "false"})
        annotations = json.loads(patch_manifests([hc])[0])["metadata"]["annotations"]
        assert annotations[TOPOLOGY] == "dedicated-request-serving-components"
        assert annotations[AUTOSCALING] == "true"

    def test_creates_missing_metadata(self):
        raw = json.dumps({"kind": "HostedCluster", "spec": {"release": {}}})
        doc = json.loads(patch_manifests([raw])[0])
        assert doc["metadata"]["annotations"][TOPOLOGY] == "dedicated-request-serving-components"
        assert doc["spec"] == {"release": {}}

    def test_replaces_non_mapping_levels(self):
        raw = json.dumps({"kind": "HostedCluster", "metadata": {"annotations": None}})
        doc = json.loads(patch_manifests([raw])[0])
        assert doc["metadata"]["annotations"][AUTOSCALING] == "true"

    def test_idempotent(self):
        once = patch_manifests([NAMESPACE, _doc("HostedCluster", annotations={"a": "b"})])
        twice = patch_manifests(once)
        assert once == twice

    def test_no_hosted_cluster(self):
        with pytest.raises(ManifestNotFoundError, match="HostedCluster not found"):
            patch_manifests([NAMESPACE, SECRET])

    def test_empty_set(self):
        with pytest.raises(ManifestNotFoundError):
            patch_manifests([])

    def test_only_first_hosted_cluster_patched(self):
        second = _doc("HostedCluster", "second")
        patched = patch_manifests([_doc("HostedCluster", "first"), second])
        assert TOPOLOGY in json.loads(patched[0])["metadata"]["annotations"]
        assert patched[1] is second

    def test_malformed_elements_skipped(self):
        manifests = [None, "", "{not json", "[1, 2]", '"text"', _doc("HostedCluster")]
        patched = patch_manifests(manifests)
        assert patched[:5] == manifests[:5]
        assert json.loads(patched[5])["metadata"]["annotations"][AUTOSCALING] == "true"

    def test_bytes_stay_bytes(self):
        raw = _doc("HostedCluster").encode("utf-8")
        patched = patch_manifests([raw])
        assert isinstance(patched[0], bytes)
        assert json.loads(patched[0])["metadata"]["annotations"][AUTOSCALING] == "true"

    def test_kind_is_case_sensitive(self):
        with pytest.raises(ManifestNotFoundError):
            patch_manifests([_doc("hostedcluster")])


class TestFindHostedCluster:
    def test_index(self):
        assert find_hosted_cluster([NAMESPACE, SECRET, _doc("HostedCluster")]) == 2

    def test_missing(self):
        assert find_hosted_cluster([NAMESPACE]) is None


class TestApplyAnnotations:
    def test_in_place(self):
        doc: dict = {"kind": "HostedCluster"}
        assert apply_annotations(doc) is doc
        assert doc["metadata"]["annotations"][TOPOLOGY] == "dedicated-request-serving-components"
