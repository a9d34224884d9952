"""Resource spec generation.

Turns one declared service, its template defaults and its previously
persisted record into the cluster objects that should exist for it.

Example:
    generator = SpecGenerator(volume_resolver)
    specs = await generator.generate(
        "demo", project.id, "main", service, secrets={}, prior=None
    )
    specs.workload   # Deployment manifest
    specs.network    # Service manifest, or None
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from nimbus.app.core.manifest import ServiceDeclaration
from nimbus.app.entities import ServiceRecord
from nimbus.infra.k8s import Manifest

from .ingress import (
    HostnameAllocationError,
    allocate_host,
    build_ingress,
    generate_host,
    ingress_hosts,
    ingress_url,
)
from .network import assigned_node_ports, build_network, node_port_url
from .templates import (
    TEMPLATES,
    is_http,
    requires_network,
    resolve_env,
    resolve_image,
    resolve_volumes,
    uses_node_ports,
)
from .volumes import VolumeResolver, build_storage_claim
from .workload import MountedVolume, build_workload, restart_marker, substitute_secrets


@dataclass(frozen=True)
class ServiceSpecs:
    """Desired cluster objects for one service."""

    workload: Manifest
    network: Manifest | None
    volumes: list[MountedVolume]


class SpecGenerator:
    """Generate the workload and network specs of a service.

    Only volume resolution touches the cluster or the store; everything else
    is computed locally.
    """

    def __init__(self, volumes: VolumeResolver) -> None:
        self._volumes = volumes

    async def generate(
        self,
        namespace: str,
        project_id: uuid.UUID,
        branch: str,
        service: ServiceDeclaration,
        *,
        secrets: Mapping[str, str],
        prior: ServiceRecord | None = None,
    ) -> ServiceSpecs:
        mounted = await self._volumes.resolve(
            namespace, project_id, branch, resolve_volumes(service)
        )
        workload = build_workload(namespace, service, secrets=secrets, volumes=mounted)
        network = build_network(namespace, service, prior) if requires_network(service) else None
        return ServiceSpecs(workload=workload, network=network, volumes=mounted)


__all__ = [
    "TEMPLATES",
    "HostnameAllocationError",
    "MountedVolume",
    "ServiceSpecs",
    "SpecGenerator",
    "VolumeResolver",
    "allocate_host",
    "assigned_node_ports",
    "build_ingress",
    "build_network",
    "build_storage_claim",
    "build_workload",
    "generate_host",
    "ingress_hosts",
    "ingress_url",
    "is_http",
    "node_port_url",
    "requires_network",
    "resolve_env",
    "resolve_image",
    "resolve_volumes",
    "restart_marker",
    "substitute_secrets",
    "uses_node_ports",
]
