"""Abstract Kubernetes gateway interface.

Defines the contract for the cluster operations the reconciliation engine
needs. Implementations exist for the kr8s library (production) and for an
in-memory cluster (tests and local development).

Resources are exchanged as plain Kubernetes manifests (``dict``) so that
spec generation stays independent from the client library.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

Manifest = dict[str, Any]
SecretBundle = dict[str, str]

# =============================================================================
# Data Types
# =============================================================================


class ClusterError(Exception):
    """Raised when a cluster API call fails."""

    def __init__(self, operation: str, kind: str, name: str, detail: str = "") -> None:
        self.operation = operation
        self.kind = kind
        self.name = name
        self.detail = detail
        message = f"failed to {operation} {kind} '{name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass
class PodInfo:
    """Information about a Kubernetes pod."""

    name: str
    status: str
    restarts: int = 0
    creation_timestamp: str = ""
    node: str = ""
    labels: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Abstract Gateway
# =============================================================================


class ClusterGateway(ABC):
    """Abstract base class for cluster operations.

    All operations are keyed by namespace and object name. ``get_*`` methods
    return ``None`` when the object does not exist, ``delete_*`` methods
    return ``False`` when there was nothing to delete. Any other failure
    raises :class:`ClusterError`.
    """

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    @abstractmethod
    async def get_namespace(self, name: str) -> Manifest | None:
        """Get a namespace.

        Args:
            name: Namespace name

        Returns:
            The namespace manifest, or None if it does not exist
        """
        ...

    @abstractmethod
    async def create_namespace(self, name: str) -> Manifest:
        """Create a namespace.

        Args:
            name: Namespace name

        Returns:
            The created namespace manifest
        """
        ...

    @abstractmethod
    async def delete_namespace(self, name: str) -> bool:
        """Delete a namespace and everything it contains.

        Args:
            name: Namespace name

        Returns:
            True if the namespace was deleted, False if it did not exist
        """
        ...

    # =========================================================================
    # Workload (Deployment) Operations
    # =========================================================================

    @abstractmethod
    async def get_workload(self, namespace: str, name: str) -> Manifest | None:
        """Get a Deployment by name."""
        ...

    @abstractmethod
    async def create_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        """Create a Deployment and return the stored object."""
        ...

    @abstractmethod
    async def update_workload(self, namespace: str, manifest: Manifest) -> Manifest:
        """Replace the spec of an existing Deployment."""
        ...

    @abstractmethod
    async def delete_workload(self, namespace: str, name: str) -> bool:
        """Delete a Deployment."""
        ...

    # =========================================================================
    # Network Object (Service) Operations
    # =========================================================================

    @abstractmethod
    async def get_network(self, namespace: str, name: str) -> Manifest | None:
        """Get a Service by name."""
        ...

    @abstractmethod
    async def create_network(self, namespace: str, manifest: Manifest) -> Manifest:
        """Create a Service and return it with any assigned node ports."""
        ...

    @abstractmethod
    async def update_network(self, namespace: str, manifest: Manifest) -> Manifest:
        """Replace the spec of an existing Service."""
        ...

    @abstractmethod
    async def delete_network(self, namespace: str, name: str) -> bool:
        """Delete a Service."""
        ...

    # =========================================================================
    # Ingress Operations
    # =========================================================================

    @abstractmethod
    async def get_ingress(self, namespace: str, name: str) -> Manifest | None:
        """Get an Ingress by name."""
        ...

    @abstractmethod
    async def list_ingresses(self, namespace: str) -> list[Manifest]:
        """List all Ingresses in a namespace."""
        ...

    @abstractmethod
    async def create_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        """Create an Ingress."""
        ...

    @abstractmethod
    async def update_ingress(self, namespace: str, manifest: Manifest) -> Manifest:
        """Replace the spec and annotations of an existing Ingress."""
        ...

    @abstractmethod
    async def delete_ingress(self, namespace: str, name: str) -> bool:
        """Delete an Ingress."""
        ...

    # =========================================================================
    # Storage Claim (PersistentVolumeClaim) Operations
    # =========================================================================

    @abstractmethod
    async def get_storage_claim(self, namespace: str, name: str) -> Manifest | None:
        """Get a PersistentVolumeClaim by name."""
        ...

    @abstractmethod
    async def create_storage_claim(
        self, namespace: str, manifest: Manifest
    ) -> Manifest:
        """Create a PersistentVolumeClaim."""
        ...

    @abstractmethod
    async def delete_storage_claim(self, namespace: str, name: str) -> bool:
        """Delete a PersistentVolumeClaim."""
        ...

    # =========================================================================
    # Secret Bundle Operations
    # =========================================================================

    @abstractmethod
    async def get_secret_bundle(self, namespace: str, name: str) -> SecretBundle:
        """Read a secret as a decoded string mapping.

        Returns:
            The secret data, or an empty mapping if the secret does not exist
        """
        ...

    @abstractmethod
    async def set_secret_bundle(
        self, namespace: str, name: str, data: SecretBundle
    ) -> None:
        """Create or replace a secret so that it holds exactly ``data``."""
        ...

    # =========================================================================
    # Pod Operations
    # =========================================================================

    @abstractmethod
    async def list_pods(self, namespace: str, label_selector: str) -> list[PodInfo]:
        """List pods matching a label selector.

        Args:
            namespace: Kubernetes namespace
            label_selector: Label selector (e.g., "app=web")

        Returns:
            List of PodInfo objects
        """
        ...

    @abstractmethod
    async def read_pod_logs(
        self, namespace: str, pod: str, *, tail_lines: int = 20
    ) -> str:
        """Read the last ``tail_lines`` lines of a pod's logs."""
        ...
