"""In-memory cluster gateway.

Keeps every object in process memory. Used by the test-suite and for running
the API locally without a cluster (``cluster.backend: memory``).
"""

from __future__ import annotations

import copy
import itertools
from typing import override

from .controller import (
    ClusterError,
    ClusterGateway,
    Manifest,
    PodInfo,
    SecretBundle,
)

NODE_PORT_RANGE_START = 30000


class InMemoryClusterGateway(ClusterGateway):
    """Cluster gateway backed by dictionaries.

    Node ports are assigned sequentially from 30000 for NodePort services
    unless the manifest requests a specific one. Failures can be injected per
    (operation, kind, name) to exercise error paths.
    """

    def __init__(self) -> None:
        self.namespaces: dict[str, Manifest] = {}
        # kind -> (namespace, name) -> manifest
        self.objects: dict[str, dict[tuple[str, str], Manifest]] = {
            "Deployment": {},
            "Service": {},
            "Ingress": {},
            "PersistentVolumeClaim": {},
        }
        self.secrets: dict[tuple[str, str], SecretBundle] = {}
        self.pods: dict[str, list[PodInfo]] = {}
        self.logs: dict[tuple[str, str], str] = {}
        self.calls: list[tuple[str, str, str]] = []
        self._failures: set[tuple[str, str, str]] = set()
        self._node_ports = itertools.count(NODE_PORT_RANGE_START)

    # =========================================================================
    # Test helpers
    # =========================================================================

    def inject_failure(self, operation: str, kind: str, name: str) -> None:
        """Make the next matching call raise ClusterError (until cleared)."""
        self._failures.add((operation, kind, name))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _record(self, operation: str, kind: str, name: str) -> None:
        self.calls.append((operation, kind, name))
        if (operation, kind, name) in self._failures:
            raise ClusterError(operation, kind, name, "injected failure")

    def mutating_calls(self) -> list[tuple[str, str, str]]:
        """Calls that changed cluster state."""
        return [call for call in self.calls if call[0] not in ("get", "list")]

    def _require_namespace(self, namespace: str, kind: str, name: str) -> None:
        if namespace not in self.namespaces:
            raise ClusterError("create", kind, name, f'namespace "{namespace}" not found')

    # =========================================================================
    # Generic helpers
    # =========================================================================

    def _get(self, kind: str, namespace: str, name: str) -> Manifest | None:
        self._record("get", kind, name)
        found = self.objects[kind].get((namespace, name))
        return copy.deepcopy(found) if found is not None else None

    def _create(self, kind: str, namespace: str, manifest: Manifest) -> Manifest:
        name = manifest["metadata"]["name"]
        self._record("create", kind, name)
        self._require_namespace(namespace, kind, name)
        if (namespace, name) in self.objects[kind]:
            raise ClusterError("create", kind, name, "already exists")
        stored = copy.deepcopy(manifest)
        stored["metadata"]["namespace"] = namespace
        self.objects[kind][(namespace, name)] = stored
        return copy.deepcopy(stored)

    def _update(self, kind: str, namespace: str, manifest: Manifest) -> Manifest:
        name = manifest["metadata"]["name"]
        self._record("update", kind, name)
        existing = self.objects[kind].get((namespace, name))
        if existing is None:
            raise ClusterError("update", kind, name, "not found")
        existing["spec"] = copy.deepcopy(manifest.get("spec", {}))
        if "annotations" in manifest["metadata"]:
            existing["metadata"]["annotations"] = copy.deepcopy(manifest["metadata"]["annotations"])
        return copy.deepcopy(existing)

    def _delete(self, kind: str, namespace: str, name: str) -> bool:
        self._record("delete", kind, name)
        return self.objects[kind].pop((namespace, name), None) is not None

    def _assign_node_ports(self, manifest: Manifest) -> None:
        spec = manifest.get("spec", {})
        if spec.get("type") != "NodePort":
            for port in spec.get("ports", []):
                port.pop("nodePort", None)
            return
        for port in spec.get("ports", []):
            if not port.get("nodePort"):
                port["nodePort"] = next(self._node_ports)

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    @override
    async def get_namespace(self, name: str) -> Manifest | None:
        self._record("get", "Namespace", name)
        found = self.namespaces.get(name)
        return copy.deepcopy(found) if found is not None else None

    @override
    async def create_namespace(self, name: str) -> Manifest:
        self._record("create", "Namespace", name)
        if name in self.namespaces:
            raise ClusterError("create", "Namespace", name, "already exists")
        self.namespaces[name] = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name},
        }
        return copy.deepcopy(self.namespaces[name])

    @override
    async def delete_namespace(self, name: str) -> bool:
        self._record("delete", "Namespace", name)
        if self.namespaces.pop(name, None) is None:
            return False
        for objects in self.objects.values():
            for key in [key for key in objects if key[0] == name]:
                del objects[key]
        for key in [key for key in self.secrets if key[0] == name]:
            del self.secrets[key]
        self.pods.pop(name, None)
        return True

    # =========================================================================
    # Workload Operations
    # =========================================================================

    @override
    async def get_workload(self, namespace: str, name: str) -> Manifest | None:
        return self._get("Deployment", namespace, name)

    @override
    async def create_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        return self._create("Deployment", namespace, manifest)

    @override
    async def update_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        return self._update("Deployment", namespace, manifest)

    @override
    async def delete_workload(self, namespace: str, name: str) -> bool:
        return self._delete("Deployment", namespace, name)

    # =========================================================================
    # Network Object Operations
    # =========================================================================

    @override
    async def get_network(self, namespace: str, name: str) -> Manifest | None:
        return self._get("Service", namespace, name)

    @override
    async def create_network(self, namespace: str, manifest: Manifest) -> Manifest:
        manifest = copy.deepcopy(manifest)
        self._assign_node_ports(manifest)
        return self._create("Service", namespace, manifest)

    @override
    async def update_network(self, namespace: str, manifest: Manifest) -> Manifest:
        manifest = copy.deepcopy(manifest)
        # Like the API server, keep node ports of ports the update leaves unset
        existing = self.objects["Service"].get((namespace, manifest["metadata"]["name"]))
        if existing is not None:
            allocated = {
                port.get("name"): port["nodePort"]
                for port in existing["spec"].get("ports", [])
                if port.get("nodePort")
            }
            for port in manifest.get("spec", {}).get("ports", []):
                if not port.get("nodePort") and port.get("name") in allocated:
                    port["nodePort"] = allocated[port["name"]]
        self._assign_node_ports(manifest)
        return self._update("Service", namespace, manifest)

    @override
    async def delete_network(self, namespace: str, name: str) -> bool:
        return self._delete("Service", namespace, name)

    # =========================================================================
    # Ingress Operations
    # =========================================================================

    @override
    async def get_ingress(self, namespace: str, name: str) -> Manifest | None:
        return self._get("Ingress", namespace, name)

    @override
    async def list_ingresses(self, namespace: str) -> list[Manifest]:
        self._record("list", "Ingress", namespace)
        return [
            copy.deepcopy(manifest)
            for (ns, _), manifest in self.objects["Ingress"].items()
            if ns == namespace
        ]

    @override
    async def create_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        return self._create("Ingress", namespace, manifest)

    @override
    async def update_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        return self._update("Ingress", namespace, manifest)

    @override
    async def delete_ingress(self, namespace: str, name: str) -> bool:
        return self._delete("Ingress", namespace, name)

    # =========================================================================
    # Storage Claim Operations
    # =========================================================================

    @override
    async def get_storage_claim(self, namespace: str, name: str) -> Manifest | None:
        return self._get("PersistentVolumeClaim", namespace, name)

    @override
    async def create_storage_claim(
        self, namespace: str, manifest: Manifest
    ) -> Manifest:
        return self._create("PersistentVolumeClaim", namespace, manifest)

    @override
    async def delete_storage_claim(self, namespace: str, name: str) -> bool:
        return self._delete("PersistentVolumeClaim", namespace, name)

    # =========================================================================
    # Secret Bundle Operations
    # =========================================================================

    @override
    async def get_secret_bundle(self, namespace: str, name: str) -> SecretBundle:
        self._record("get", "Secret", name)
        return dict(self.secrets.get((namespace, name), {}))

    @override
    async def set_secret_bundle(
        self, namespace: str, name: str, data: SecretBundle
    ) -> None:
        self._record("set", "Secret", name)
        self._require_namespace(namespace, "Secret", name)
        self.secrets[(namespace, name)] = dict(data)

    # =========================================================================
    # Pod Operations
    # =========================================================================

    @override
    async def list_pods(self, namespace: str, label_selector: str) -> list[PodInfo]:
        self._record("list", "Pod", label_selector)
        wanted = dict(
            part.split("=", 1) for part in label_selector.split(",") if "=" in part
        )
        return [
            pod
            for pod in self.pods.get(namespace, [])
            if all(pod.labels.get(key) == value for key, value in wanted.items())
        ]

    @override
    async def read_pod_logs(
        self, namespace: str, pod: str, *, tail_lines: int = 20
    ) -> str:
        self._record("get", "PodLogs", pod)
        lines = self.logs.get((namespace, pod), "").splitlines()
        return "\n".join(lines[-tail_lines:])
