"""Kr8s-based implementation of ClusterGateway.

Uses the kr8s library for native async Kubernetes operations.
"""

from __future__ import annotations

import base64
import copy
from typing import Any

import kr8s
from kr8s.asyncio.objects import (
    APIObject,
    Deployment,
    Ingress,
    Namespace,
    PersistentVolumeClaim,
    Pod,
    Secret,
    Service,
)
from loguru import logger

from .controller import (
    ClusterError,
    ClusterGateway,
    Manifest,
    PodInfo,
    SecretBundle,
)

_SERVICE_ALLOCATED_FIELDS = ("clusterIP", "clusterIPs", "ipFamilies", "ipFamilyPolicy")


class Kr8sClusterGateway(ClusterGateway):
    """Cluster gateway using the kr8s library.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. A fresh client is requested per call, kr8s
    reuses the underlying configuration.
    """

    def __init__(self, kubeconfig: str | None = None) -> None:
        """Initialize the kr8s gateway.

        Args:
            kubeconfig: Optional kubeconfig path; in-cluster or default
                        discovery is used when omitted
        """
        self._kubeconfig = kubeconfig

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Get a kr8s API client bound to the running event loop."""
        if self._kubeconfig:
            return await kr8s.asyncio.api(kubeconfig=self._kubeconfig)
        return await kr8s.asyncio.api()

    # =========================================================================
    # Generic helpers
    # =========================================================================

    async def _get(
        self, kind: type[APIObject], name: str, namespace: str | None = None
    ) -> APIObject | None:
        try:
            api = await self._get_api()
            if namespace is None:
                return await kind.get(name, api=api)
            return await kind.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            raise ClusterError("get", kind.kind, name, str(e)) from e

    async def _create(
        self, kind: type[APIObject], namespace: str | None, manifest: Manifest
    ) -> Manifest:
        name = manifest.get("metadata", {}).get("name", "")
        try:
            api = await self._get_api()
            obj = kind(copy.deepcopy(manifest), namespace=namespace, api=api)
            await obj.create()
            return dict(obj.raw)
        except Exception as e:
            raise ClusterError("create", kind.kind, name, str(e)) from e

    async def _replace_spec(
        self, kind: type[APIObject], namespace: str, manifest: Manifest
    ) -> Manifest:
        """Replace the spec of an existing object.

        The whole ``spec`` is swapped with a JSON patch, so keys missing from
        the desired manifest are removed from the live object. Annotations are
        replaced too when the manifest declares them. The patch is guarded by
        the resourceVersion that was read.
        """
        metadata = manifest.get("metadata", {})
        name = metadata.get("name", "")
        obj = await self._get(kind, name, namespace)
        if obj is None:
            raise ClusterError("update", kind.kind, name, "not found")

        live = obj.raw
        spec = copy.deepcopy(manifest.get("spec", {}))
        if kind is Service:
            # Allocated addresses are immutable and must be sent back unchanged
            for field in _SERVICE_ALLOCATED_FIELDS:
                if field in live.get("spec", {}) and field not in spec:
                    spec[field] = live["spec"][field]

        patch: list[dict[str, Any]] = []
        if resource_version := live.get("metadata", {}).get("resourceVersion"):
            patch.append(
                {"op": "test", "path": "/metadata/resourceVersion", "value": resource_version}
            )
        patch.append({"op": "replace", "path": "/spec", "value": spec})
        if "annotations" in metadata:
            patch.append(
                {"op": "add", "path": "/metadata/annotations", "value": metadata["annotations"]}
            )
        try:
            await obj.patch(patch, type="json")
            return dict(obj.raw)
        except Exception as e:
            raise ClusterError("update", kind.kind, name, str(e)) from e

    async def _delete(
        self, kind: type[APIObject], name: str, namespace: str | None = None
    ) -> bool:
        obj = await self._get(kind, name, namespace)
        if obj is None:
            logger.debug(f"{kind.kind} '{name}' already absent, nothing to delete")
            return False
        try:
            await obj.delete()
            return True
        except kr8s.NotFoundError:
            return False
        except Exception as e:
            raise ClusterError("delete", kind.kind, name, str(e)) from e

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    async def get_namespace(self, name: str) -> Manifest | None:
        ns = await self._get(Namespace, name)
        return dict(ns.raw) if ns is not None else None

    async def create_namespace(self, name: str) -> Manifest:
        return await self._create(
            Namespace,
            None,
            {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}},
        )

    async def delete_namespace(self, name: str) -> bool:
        return await self._delete(Namespace, name)

    # =========================================================================
    # Workload Operations
    # =========================================================================

    async def get_workload(self, namespace: str, name: str) -> Manifest | None:
        deployment = await self._get(Deployment, name, namespace)
        return dict(deployment.raw) if deployment is not None else None

    async def create_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._create(Deployment, namespace, manifest)

    async def update_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._replace_spec(Deployment, namespace, manifest)

    async def delete_workload(self, namespace: str, name: str) -> bool:
        return await self._delete(Deployment, name, namespace)

    # =========================================================================
    # Network Object Operations
    # =========================================================================

    async def get_network(self, namespace: str, name: str) -> Manifest | None:
        service = await self._get(Service, name, namespace)
        return dict(service.raw) if service is not None else None

    async def create_network(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._create(Service, namespace, manifest)

    async def update_network(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._replace_spec(Service, namespace, manifest)

    async def delete_network(self, namespace: str, name: str) -> bool:
        return await self._delete(Service, name, namespace)

    # =========================================================================
    # Ingress Operations
    # =========================================================================

    async def get_ingress(self, namespace: str, name: str) -> Manifest | None:
        ingress = await self._get(Ingress, name, namespace)
        return dict(ingress.raw) if ingress is not None else None

    async def list_ingresses(self, namespace: str) -> list[Manifest]:
        try:
            api = await self._get_api()
            return [
                dict(ingress.raw)
                async for ingress in Ingress.list(namespace=namespace, api=api)
            ]
        except Exception as e:
            raise ClusterError("list", "Ingress", namespace, str(e)) from e

    async def create_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._create(Ingress, namespace, manifest)

    async def update_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        return await self._replace_spec(Ingress, namespace, manifest)

    async def delete_ingress(self, namespace: str, name: str) -> bool:
        return await self._delete(Ingress, name, namespace)

    # =========================================================================
    # Storage Claim Operations
    # =========================================================================

    async def get_storage_claim(self, namespace: str, name: str) -> Manifest | None:
        pvc = await self._get(PersistentVolumeClaim, name, namespace)
        return dict(pvc.raw) if pvc is not None else None

    async def create_storage_claim(
        self, namespace: str, manifest: Manifest
    ) -> Manifest:
        return await self._create(PersistentVolumeClaim, namespace, manifest)

    async def delete_storage_claim(self, namespace: str, name: str) -> bool:
        return await self._delete(PersistentVolumeClaim, name, namespace)

    # =========================================================================
    # Secret Bundle Operations
    # =========================================================================

    async def get_secret_bundle(self, namespace: str, name: str) -> SecretBundle:
        secret = await self._get(Secret, name, namespace)
        if secret is None:
            return {}
        data = secret.raw.get("data") or {}
        return {
            key: base64.b64decode(value).decode("utf-8")
            for key, value in data.items()
        }

    async def set_secret_bundle(
        self, namespace: str, name: str, data: SecretBundle
    ) -> None:
        encoded = {
            key: base64.b64encode(value.encode("utf-8")).decode("ascii")
            for key, value in data.items()
        }
        secret = await self._get(Secret, name, namespace)
        if secret is None:
            await self._create(
                Secret,
                namespace,
                {
                    "apiVersion": "v1",
                    "kind": "Secret",
                    "type": "Opaque",
                    "metadata": {"name": name, "namespace": namespace},
                    "data": encoded,
                },
            )
            return

        # Replace the data entirely so that removed keys disappear
        try:
            await secret.patch(
                [{"op": "replace", "path": "/data", "value": encoded}], type="json"
            )
        except Exception as e:
            raise ClusterError("update", "Secret", name, str(e)) from e

    # =========================================================================
    # Pod Operations
    # =========================================================================

    async def list_pods(self, namespace: str, label_selector: str) -> list[PodInfo]:
        try:
            api = await self._get_api()
            result = []

            async for pod in Pod.list(
                namespace=namespace, label_selector=label_selector, api=api
            ):
                metadata = pod.metadata
                spec = pod.spec
                status = pod.status

                phase = status.get("phase", "Unknown")
                restarts = sum(
                    cs.get("restartCount", 0)
                    for cs in status.get("containerStatuses", [])
                )

                result.append(
                    PodInfo(
                        name=metadata.get("name", ""),
                        status=phase,
                        restarts=restarts,
                        creation_timestamp=metadata.get("creationTimestamp", ""),
                        node=spec.get("nodeName", ""),
                        labels=dict(metadata.get("labels", {})),
                    )
                )

            return result
        except Exception as e:
            raise ClusterError("list", "Pod", label_selector, str(e)) from e

    async def read_pod_logs(
        self, namespace: str, pod: str, *, tail_lines: int = 20
    ) -> str:
        found = await self._get(Pod, pod, namespace)
        if found is None:
            return ""
        try:
            lines = [line async for line in found.logs(tail_lines=tail_lines)]
        except Exception as e:
            raise ClusterError("read logs of", "Pod", pod, str(e)) from e
        return "\n".join(lines)
