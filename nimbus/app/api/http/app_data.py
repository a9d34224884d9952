from dataclasses import dataclass

from nimbus.app.core.services.database import DbManageService, SqlStateStore, StateStore
from nimbus.app.core.services.lifecycle import LifecycleManager
from nimbus.app.core.services.locks import BranchLockRegistry
from nimbus.app.core.services.projects import ProjectService
from nimbus.app.core.services.reconciler import DeploymentReconciler
from nimbus.app.core.services.specs import SpecGenerator, VolumeResolver
from nimbus.app.core.services.status import ServiceStatusService
from nimbus.app.runtime.config.config_data import ConfigData
from nimbus.infra.k8s import ClusterGateway, get_cluster_gateway


@dataclass
class ApplicationDependencies:
    config: ConfigData
    database_service: DbManageService
    store: StateStore
    cluster: ClusterGateway
    locks: BranchLockRegistry
    lifecycle: LifecycleManager
    reconciler: DeploymentReconciler
    projects: ProjectService
    statuses: ServiceStatusService


def build_dependencies(
    config: ConfigData,
    *,
    cluster: ClusterGateway | None = None,
    database_service: DbManageService | None = None,
) -> ApplicationDependencies:
    """Wire the engine's services around one cluster gateway and one store."""
    if cluster is None:
        cluster = get_cluster_gateway(config.cluster.backend, config.cluster.kubeconfig)
    if database_service is None:
        database_service = DbManageService(config.database)

    store = SqlStateStore(database_service.engine)
    locks = BranchLockRegistry()
    lifecycle = LifecycleManager(cluster, store, locks)
    specs = SpecGenerator(
        VolumeResolver(
            cluster,
            store,
            storage_class=config.cluster.storage_class,
            default_size_mib=config.deploy.default_volume_size_mib,
        )
    )
    projects = ProjectService(store, cluster, lifecycle)
    return ApplicationDependencies(
        config=config,
        database_service=database_service,
        store=store,
        cluster=cluster,
        locks=locks,
        lifecycle=lifecycle,
        reconciler=DeploymentReconciler(
            cluster, store, lifecycle, specs, locks, config.cluster
        ),
        projects=projects,
        statuses=ServiceStatusService(
            store, cluster, projects, log_tail_lines=config.deploy.log_tail_lines
        ),
    )
