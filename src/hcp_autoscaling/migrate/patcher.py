"""Inject the autoscaling annotations into a ManifestWork's HostedCluster.

A manifest set is the ordered list of serialized documents carried by a
ManifestWork.  Documents are decoded one at a time into plain dicts; only
the first ``HostedCluster`` is modified and re-encoded, every other
element is returned as the exact object it was given.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from hcp_autoscaling.models import REQUIRED_ANNOTATIONS

HOSTED_CLUSTER_KIND = "HostedCluster"

Manifest = str | bytes
ManifestSet = list[Manifest]


class ManifestNotFoundError(Exception):
    """Raised when a manifest set contains no HostedCluster document."""


class ManifestEncodeError(Exception):
    """Raised when a patched document cannot be serialized."""


def _decode(raw: Manifest | None) -> dict[str, Any] | None:
    """Decode one document, or return None if it is empty or not an object."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def _encode(data: dict[str, Any], like: Manifest) -> Manifest:
    try:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ManifestEncodeError(f"failed to marshal modified manifest: {exc}") from exc
    if isinstance(like, bytes):
        return text.encode("utf-8")
    return text


def _ensure_mapping(parent: dict[str, Any], key: str) -> dict[str, Any]:
    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def apply_annotations(document: dict[str, Any]) -> dict[str, Any]:
    """Set the autoscaling annotations on a decoded document, in place."""
    metadata = _ensure_mapping(document, "metadata")
    annotations = _ensure_mapping(metadata, "annotations")
    annotations.update(REQUIRED_ANNOTATIONS)
    return document


def find_hosted_cluster(manifests: Sequence[Manifest | None]) -> int | None:
    """Index of the first HostedCluster document, or None."""
    for index, raw in enumerate(manifests):
        data = _decode(raw)
        if data is not None and data.get("kind") == HOSTED_CLUSTER_KIND:
            return index
    return None


def patch_manifests(manifests: Sequence[Manifest | None]) -> ManifestSet:
    """Return a copy of *manifests* with the HostedCluster annotated.

    Only the first HostedCluster is patched.  Existing values of the two
    autoscaling annotations are overwritten, so patching twice produces
    identical output.

    Raises:
        ManifestNotFoundError: No element decodes with ``kind: HostedCluster``.
        ManifestEncodeError: The patched document could not be re-serialized.
    """
    index = find_hosted_cluster(manifests)
    if index is None:
        raise ManifestNotFoundError("HostedCluster not found in ManifestWork manifests")

    patched = list(manifests)
    raw = manifests[index]
    document = _decode(raw)
    assert document is not None
    patched[index] = _encode(apply_annotations(document), raw)
    return patched
