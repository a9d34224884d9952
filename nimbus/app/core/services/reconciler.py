"""Deployment reconciliation.

Converges a (project, branch) onto a manifest: services the manifest no
longer declares are removed, the branch namespace is prepared, then every
declared service is applied in manifest order and its exposure (node ports
or ingress host) is persisted so it survives redeploys.

Work is applied at least once, not transactionally: a failure aborts the
remaining steps and nothing already applied is rolled back.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from loguru import logger

from nimbus.app.core.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    UnprocessableEntityError,
)
from nimbus.app.core.manifest import Manifest, ServiceDeclaration
from nimbus.app.core.naming import (
    is_canonical_branch,
    namespace_for,
    normalize_branch,
    secret_bundle_name,
)
from nimbus.app.core.services.database import StateStore, StoreError
from nimbus.app.core.services.diff import services_to_delete
from nimbus.app.core.services.lifecycle import LifecycleManager
from nimbus.app.core.services.locks import BranchLockRegistry
from nimbus.app.core.services.specs import (
    HostnameAllocationError,
    SpecGenerator,
    allocate_host,
    assigned_node_ports,
    build_ingress,
    ingress_url,
    is_http,
    node_port_url,
    uses_node_ports,
)
from nimbus.app.entities import Project, ServiceRecord
from nimbus.app.runtime.config.config_data import ClusterConfig
from nimbus.infra.k8s import ClusterError, ClusterGateway, SecretBundle
from nimbus.infra.k8s import Manifest as ObjectManifest

ServiceUrls = dict[str, list[str]]


class DeploymentReconciler:
    def __init__(
        self,
        cluster: ClusterGateway,
        store: StateStore,
        lifecycle: LifecycleManager,
        specs: SpecGenerator,
        locks: BranchLockRegistry,
        config: ClusterConfig,
    ) -> None:
        self._cluster = cluster
        self._store = store
        self._lifecycle = lifecycle
        self._specs = specs
        self._locks = locks
        self._config = config

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate(project: Project, branch: str, manifest: Manifest) -> None:
        """Reject a deploy before anything is touched.

        Raises:
            BadRequestError: If the manifest names another app
            UnprocessableEntityError: If service names are not unique
            ConflictError: If previews are disabled and the branch is a preview
        """
        if manifest.app != project.name:
            raise BadRequestError(
                f"app name '{manifest.app}' does not match project '{project.name}'"
            )
        if duplicates := manifest.duplicate_service_names():
            raise UnprocessableEntityError(
                f"service names must be unique - duplicated: {', '.join(duplicates)}"
            )
        if not is_canonical_branch(branch) and not manifest.previews_allowed:
            raise ConflictError("branch previews are disabled")

    # =========================================================================
    # Deploy
    # =========================================================================

    async def deploy(
        self, project: Project, branch: str | None, manifest: Manifest
    ) -> ServiceUrls:
        """Reconcile a branch onto a manifest.

        Returns:
            The public URLs of every declared service, keyed by service name
            (an empty list for services that are not exposed)

        Raises:
            BadRequestError, UnprocessableEntityError, ConflictError: On
                invalid input, before any side effect
            InternalError: If the cluster or the store fails mid-way
        """
        branch = normalize_branch(branch)
        self.validate(project, branch, manifest)

        if not self._config.storage_class:
            logger.error("cluster.storage_class is not configured")
            raise InternalError()

        namespace = namespace_for(project.name, branch)
        async with self._locks.hold(namespace):
            logger.info(
                f"Deploying {len(manifest.services)} services to {namespace} "
                f"(project={project.name}, branch={branch})"
            )
            try:
                return await self._apply(project, branch, namespace, manifest)
            except (ClusterError, StoreError, HostnameAllocationError) as e:
                logger.opt(exception=e).error(f"Deploy to {namespace} failed: {e}")
                raise InternalError() from e

    async def _apply(
        self, project: Project, branch: str, namespace: str, manifest: Manifest
    ) -> ServiceUrls:
        existing = await self._store.list_services(project.id, branch)

        for record in services_to_delete(existing, manifest.service_names()):
            logger.info(f"Removing service '{record.name}' no longer in the manifest")
            await self._lifecycle.remove_service(namespace, record)

        await self._lifecycle.prepare_branch(project, branch)
        secrets = await self._cluster.get_secret_bundle(
            namespace, secret_bundle_name(project.name)
        )

        priors = {record.name: record for record in existing}
        urls: ServiceUrls = {}
        for service in manifest.services:
            urls[service.name] = await self._apply_service(
                project, branch, namespace, service, priors.get(service.name), secrets
            )
        return urls

    async def _apply_service(
        self,
        project: Project,
        branch: str,
        namespace: str,
        service: ServiceDeclaration,
        prior: ServiceRecord | None,
        secrets: SecretBundle,
    ) -> list[str]:
        logger.debug(f"Applying service '{service.name}' in {namespace}")
        specs = await self._specs.generate(
            namespace, project.id, branch, service, secrets=secrets, prior=prior
        )

        await self._upsert(
            namespace,
            specs.workload,
            self._cluster.get_workload,
            self._cluster.create_workload,
            self._cluster.update_workload,
        )

        node_ports: list[int] = []
        if specs.network is not None:
            network = await self._upsert(
                namespace,
                specs.network,
                self._cluster.get_network,
                self._cluster.create_network,
                self._cluster.update_network,
            )
            if uses_node_ports(service):
                node_ports = assigned_node_ports(network)
        elif prior is not None and await self._cluster.delete_network(namespace, service.name):
            logger.info(f"Service '{service.name}' declares no ports, removed its network object")

        host: str | None = None
        if is_http(service) and service.public:
            host = await self._ensure_ingress(namespace, service, prior)
        elif prior is not None and prior.ingress:
            logger.info(f"Service '{service.name}' is no longer public over HTTP, removing ingress")
            await self._lifecycle.delete_ingress_for_host(namespace, prior.ingress)

        if prior is None:
            await self._store.create_service(
                project.id, branch, service.name, node_ports=node_ports, ingress=host
            )
        else:
            await self._store.update_service_exposure(
                prior.id, node_ports=node_ports, ingress=host
            )

        if host is not None:
            return [ingress_url(host)]
        return [node_port_url(self._config.domain, port) for port in node_ports]

    async def _ensure_ingress(
        self, namespace: str, service: ServiceDeclaration, prior: ServiceRecord | None
    ) -> str:
        """Create or update the service's single ingress, keeping its host."""
        if prior is not None and prior.ingress:
            host = prior.ingress
        else:
            host = await allocate_host(self._store, self._config.domain)
            logger.info(f"Allocated ingress host {host} for '{service.name}'")

        await self._upsert(
            namespace,
            build_ingress(namespace, service.name, host, self._config),
            self._cluster.get_ingress,
            self._cluster.create_ingress,
            self._cluster.update_ingress,
        )
        return host

    @staticmethod
    async def _upsert(
        namespace: str,
        manifest: ObjectManifest,
        get: Callable[[str, str], Awaitable[ObjectManifest | None]],
        create: Callable[[str, ObjectManifest], Awaitable[ObjectManifest]],
        update: Callable[[str, ObjectManifest], Awaitable[ObjectManifest]],
    ) -> ObjectManifest:
        name = manifest["metadata"]["name"]
        if await get(namespace, name) is None:
            logger.debug(f"Creating {manifest['kind']} '{name}' in {namespace}")
            return await create(namespace, manifest)
        logger.debug(f"Updating {manifest['kind']} '{name}' in {namespace}")
        return await update(namespace, manifest)
