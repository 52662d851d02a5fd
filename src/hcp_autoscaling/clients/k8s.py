"""Kubernetes clients for the management and service clusters.

Uses the official ``kubernetes`` Python client.  Each client builds its own
``ApiClient`` from a kubeconfig context (or in-cluster config) on first use
and reuses it for every call of the run, so the management and service
clusters can be addressed side by side.

HostedCluster and ManifestWork objects are custom resources and are read
through ``CustomObjectsApi`` as plain dicts.
"""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from hcp_autoscaling.migrate.patcher import ManifestSet, patch_manifests
from hcp_autoscaling.models import ClusterRecord

T = TypeVar("T")

CLUSTER_KEY_PATTERN = re.compile(r"^(\w|-)+$", re.ASCII)

# Namespace of the HyperShift operator; only management clusters have it.
HYPERSHIFT_NAMESPACE = "hypershift"


def _check_kubernetes_available() -> None:
    """Raise ImportError with helpful message if kubernetes is not installed."""
    try:
        import kubernetes  # noqa: F401
    except ImportError:
        raise ImportError(
            "The 'kubernetes' package is required to talk to clusters. "
            "Install it with: pip install kubernetes"
        ) from None


class ClusterClientError(Exception):
    """Raised when a Kubernetes API call fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SetupError(Exception):
    """Raised when the run targets the wrong cluster or cannot connect."""


def validate_cluster_key(key: str) -> str:
    """Return *key* if it is a usable cluster identifier, else raise SetupError."""
    if not key or not CLUSTER_KEY_PATTERN.fullmatch(key):
        raise SetupError(
            f"invalid identifier '{key}'. Valid identifiers consist of only "
            "alphanumeric characters, hyphens and underscores"
        )
    return key


@dataclass(frozen=True)
class CustomResource:
    """Group/version/plural triple for a custom resource."""

    group: str
    version: str
    plural: str


HOSTED_CLUSTERS = CustomResource("hypershift.openshift.io", "v1beta1", "hostedclusters")
MANIFEST_WORKS = CustomResource("work.open-cluster-management.io", "v1", "manifestworks")


class KubeClient:
    """Lazily-connected wrapper around one cluster's ApiClient.

    Connection options, in order of precedence:
    - ``in_cluster=True`` uses the pod's service account
    - otherwise ``kubeconfig`` / ``context`` (both optional) select the
      kubeconfig file and context
    """

    def __init__(
        self,
        kubeconfig: str | None = None,
        context: str | None = None,
        in_cluster: bool = False,
    ) -> None:
        _check_kubernetes_available()
        self._kubeconfig = kubeconfig
        self._context = context
        self._in_cluster = in_cluster
        self._api_client: Any = None

    @property
    def context(self) -> str | None:
        return self._context

    def _get_api_client(self) -> Any:
        """Build the ApiClient once and reuse it."""
        if self._api_client is not None:
            return self._api_client

        from kubernetes import client, config

        try:
            if self._in_cluster:
                config.load_incluster_config()
                self._api_client = client.ApiClient()
            else:
                kwargs: dict[str, Any] = {}
                if self._kubeconfig:
                    kwargs["config_file"] = self._kubeconfig
                if self._context:
                    kwargs["context"] = self._context
                self._api_client = config.new_client_from_config(**kwargs)
        except Exception as exc:
            target = self._context or "default context"
            raise SetupError(f"failed to create client for {target}: {exc}") from exc
        return self._api_client

    def connect(self) -> None:
        """Load credentials now so a bad context fails before any work starts.

        Raises SetupError.
        """
        self._get_api_client()

    def _get_api_instance(self, api_class_name: str) -> Any:
        """Instantiate the appropriate API class."""
        from kubernetes import client

        api_cls = getattr(client, api_class_name)
        return api_cls(self._get_api_client())

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke an API method, converting ApiException to ClusterClientError."""
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            # Detect kubernetes ApiException by class name to avoid import
            if type(exc).__name__ == "ApiException":
                raise ClusterClientError(
                    f"K8s API error ({exc.status}): {exc.reason}",
                    status=exc.status,
                ) from exc
            raise

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None


class ManagementClusterClient(KubeClient):
    """Read-only access to HostedClusters on a management cluster."""

    def list_namespaces(self) -> list[str]:
        core = self._get_api_instance("CoreV1Api")
        result = self._call(core.list_namespace)
        return [ns.metadata.name for ns in result.items]

    def list_hosted_clusters(self, namespace: str) -> list[ClusterRecord]:
        custom = self._get_api_instance("CustomObjectsApi")
        result = self._call(
            custom.list_namespaced_custom_object,
            group=HOSTED_CLUSTERS.group,
            version=HOSTED_CLUSTERS.version,
            namespace=namespace,
            plural=HOSTED_CLUSTERS.plural,
        )
        return [ClusterRecord.from_manifest(item) for item in result.get("items", [])]

    def get_hosted_cluster(self, namespace: str, name: str) -> ClusterRecord:
        custom = self._get_api_instance("CustomObjectsApi")
        obj = self._call(
            custom.get_namespaced_custom_object,
            group=HOSTED_CLUSTERS.group,
            version=HOSTED_CLUSTERS.version,
            namespace=namespace,
            plural=HOSTED_CLUSTERS.plural,
            name=name,
        )
        return ClusterRecord.from_manifest(obj)

    def is_management_cluster(self) -> bool:
        """True when the HyperShift operator namespace exists."""
        core = self._get_api_instance("CoreV1Api")
        try:
            self._call(core.read_namespace, name=HYPERSHIFT_NAMESPACE)
        except ClusterClientError as exc:
            if exc.status == 404:
                return False
            raise
        return True


# --- ManifestWork codec ---


def manifest_set(work: dict[str, Any]) -> ManifestSet:
    """Serialize the manifests of a ManifestWork, one JSON document each."""
    manifests = (work.get("spec") or {}).get("workload", {}).get("manifests") or []
    return [json.dumps(m, separators=(",", ":")) for m in manifests]


def with_manifest_set(work: dict[str, Any], manifests: ManifestSet) -> dict[str, Any]:
    """Return a copy of *work* whose manifests are replaced by *manifests*."""
    updated = copy.deepcopy(work)
    workload = updated.setdefault("spec", {}).setdefault("workload", {})
    workload["manifests"] = [json.loads(m) for m in manifests]
    return updated


class ServiceClusterClient(KubeClient):
    """Read/write access to ManifestWorks on a service cluster.

    ManifestWorks live in the namespace named after the management cluster
    and are named after the hosted cluster's ID.
    """

    def __init__(
        self,
        namespace: str,
        kubeconfig: str | None = None,
        context: str | None = None,
        in_cluster: bool = False,
    ) -> None:
        super().__init__(kubeconfig=kubeconfig, context=context, in_cluster=in_cluster)
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def fetch_manifest_work(self, cluster_id: str) -> dict[str, Any]:
        custom = self._get_api_instance("CustomObjectsApi")
        try:
            return self._call(
                custom.get_namespaced_custom_object,
                group=MANIFEST_WORKS.group,
                version=MANIFEST_WORKS.version,
                namespace=self._namespace,
                plural=MANIFEST_WORKS.plural,
                name=cluster_id,
            )
        except ClusterClientError as exc:
            raise ClusterClientError(
                f"failed to get ManifestWork {self._namespace}/{cluster_id}: {exc}",
                status=exc.status,
            ) from exc

    def update_manifest_work(self, work: dict[str, Any]) -> dict[str, Any]:
        custom = self._get_api_instance("CustomObjectsApi")
        name = work["metadata"]["name"]
        try:
            return self._call(
                custom.replace_namespaced_custom_object,
                group=MANIFEST_WORKS.group,
                version=MANIFEST_WORKS.version,
                namespace=self._namespace,
                plural=MANIFEST_WORKS.plural,
                name=name,
                body=work,
            )
        except ClusterClientError as exc:
            raise ClusterClientError(
                f"failed to update ManifestWork: {exc}", status=exc.status,
            ) from exc

    def patch_hosted_cluster(self, cluster_id: str) -> dict[str, Any]:
        """Annotate the HostedCluster carried by the cluster's ManifestWork."""
        work = self.fetch_manifest_work(cluster_id)
        patched = patch_manifests(manifest_set(work))
        return self.update_manifest_work(with_manifest_set(work, patched))
