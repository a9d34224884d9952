from __future__ import annotations

from cachetools.func import lru_cache  # type: ignore

from nimbus.infra.k8s.controller import ClusterGateway


@lru_cache(maxsize=4)
def get_cluster_gateway(
    backend: str = "kr8s", kubeconfig: str | None = None
) -> ClusterGateway:
    """Get the process-wide ClusterGateway for a backend.

    Args:
        backend: "kr8s" for a real cluster, "memory" for an in-process cluster
        kubeconfig: Optional kubeconfig path for the kr8s backend

    Returns:
        A ClusterGateway instance, shared by all callers with the same arguments
    """
    if backend == "memory":
        from nimbus.infra.k8s.memory_controller import InMemoryClusterGateway

        return InMemoryClusterGateway()

    if backend != "kr8s":
        raise ValueError(f"Unknown cluster backend '{backend}'")

    from nimbus.infra.k8s.kr8s_controller import Kr8sClusterGateway

    return Kr8sClusterGateway(kubeconfig)
