"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over the cluster operations needed
by the reconciliation engine, supporting multiple backends (kr8s library,
in-memory cluster).

Example:
    from nimbus.infra.k8s import get_cluster_gateway

    gateway = get_cluster_gateway("kr8s")
    namespace = await gateway.get_namespace("demo")
"""

from .controller import (
    ClusterError,
    ClusterGateway,
    Manifest,
    PodInfo,
    SecretBundle,
)
from .helpers import get_cluster_gateway
from .memory_controller import InMemoryClusterGateway

__all__ = [
    # Gateway classes
    "ClusterGateway",
    "InMemoryClusterGateway",
    # Data types
    "ClusterError",
    "Manifest",
    "PodInfo",
    "SecretBundle",
    # Factories
    "get_cluster_gateway",
]
