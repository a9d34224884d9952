"""Runtime status of reconciled services."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from nimbus.app.core.errors import ErrorCode, NotFoundError
from nimbus.app.core.naming import namespace_for
from nimbus.app.core.services.database import StateStore
from nimbus.app.core.services.projects import ProjectService
from nimbus.app.entities import User
from nimbus.infra.k8s import ClusterError, ClusterGateway, PodInfo

UNKNOWN_STATUS = "Unknown"


@dataclass
class ServiceSummary:
    project: str
    branch: str
    name: str
    status: str


@dataclass
class ServiceDetail:
    project: str
    branch: str
    name: str
    node_ports: list[int]
    ingress: str | None
    pods: list[PodInfo] = field(default_factory=list)
    logs: str = ""


class ServiceStatusService:
    def __init__(
        self,
        store: StateStore,
        cluster: ClusterGateway,
        projects: ProjectService,
        *,
        log_tail_lines: int = 20,
    ) -> None:
        self._store = store
        self._cluster = cluster
        self._projects = projects
        self._log_tail_lines = log_tail_lines

    async def list_services(self, user: User) -> list[ServiceSummary]:
        """Every service of the user's projects with the phase of its first pod.

        A service whose pods cannot be listed is reported as ``Unknown``.
        """
        summaries = []
        for row in await self._store.list_services_for_user(user.id):
            namespace = namespace_for(row.project_name, row.branch)
            status = UNKNOWN_STATUS
            try:
                pods = await self._cluster.list_pods(namespace, f"app={row.name}")
                if pods:
                    status = pods[0].status
            except ClusterError as e:
                logger.warning(f"Could not list pods of {row.name} in {namespace}: {e}")
            summaries.append(
                ServiceSummary(
                    project=row.project_name, branch=row.branch, name=row.name, status=status
                )
            )
        return summaries

    async def describe_service(
        self, user: User, project_name: str, branch: str, name: str
    ) -> ServiceDetail:
        """Exposure, pods and the log tail of the first pod of one service.

        Raises:
            NotFoundError: If the project or the service does not exist
            ForbiddenError: If the user is not a project member
        """
        project = await self._projects.authorize(user, project_name)
        record = await self._store.get_service(project.id, branch, name)
        if record is None:
            raise NotFoundError(
                f"service '{name}' not found on branch '{branch}'",
                code=ErrorCode.SERVICE_NOT_FOUND,
            )

        namespace = namespace_for(project.name, branch)
        pods = await self._cluster.list_pods(namespace, f"app={name}")
        logs = ""
        if pods and self._log_tail_lines:
            try:
                logs = await self._cluster.read_pod_logs(
                    namespace, pods[0].name, tail_lines=self._log_tail_lines
                )
            except ClusterError as e:
                logger.warning(f"Could not read logs of {pods[0].name}: {e}")

        return ServiceDetail(
            project=project.name,
            branch=branch,
            name=name,
            node_ports=list(record.node_ports),
            ingress=record.ingress,
            pods=pods,
            logs=logs,
        )
