"""Namespace and branch lifecycle.

A branch exists implicitly: as the service records sharing a project and
branch name, and as the namespace derived from both. This module creates
that namespace on first deploy (seeding preview branches with the secrets of
``main``) and tears a branch down again.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from nimbus.app.core.naming import (
    DEFAULT_BRANCH,
    is_canonical_branch,
    namespace_for,
    secret_bundle_name,
    storage_claim_name,
)
from nimbus.app.core.services.database import StateStore, StoreError
from nimbus.app.core.services.locks import BranchLockRegistry
from nimbus.app.core.services.specs import ingress_hosts
from nimbus.app.entities import Project, ServiceRecord
from nimbus.infra.k8s import ClusterError, ClusterGateway


@dataclass
class TeardownFailure:
    """A cluster object that could not be deleted."""

    kind: str
    name: str
    error: str


@dataclass
class TeardownReport:
    namespace: str
    deleted_services: list[str] = field(default_factory=list)
    deleted_volumes: list[str] = field(default_factory=list)
    failures: list[TeardownFailure] = field(default_factory=list)
    namespace_deleted: bool = False

    @property
    def complete(self) -> bool:
        return self.namespace_deleted and not self.failures


class BranchTeardownError(Exception):
    """A teardown step that must not be skipped failed.

    Cluster objects removed before the failure stay removed; ``report`` tells
    what was done.
    """

    def __init__(self, message: str, report: TeardownReport) -> None:
        super().__init__(message)
        self.report = report


class LifecycleManager:
    def __init__(
        self, cluster: ClusterGateway, store: StateStore, locks: BranchLockRegistry
    ) -> None:
        self._cluster = cluster
        self._store = store
        self._locks = locks

    # =========================================================================
    # Namespaces
    # =========================================================================

    async def ensure_namespace(self, namespace: str) -> bool:
        """Create the namespace if it does not exist.

        Returns:
            True if the namespace was created by this call
        """
        if await self._cluster.get_namespace(namespace) is not None:
            return False
        logger.info(f"Creating namespace {namespace}")
        await self._cluster.create_namespace(namespace)
        return True

    async def prepare_branch(self, project: Project, branch: str) -> str:
        """Ensure the branch namespace exists and return its name.

        A preview branch namespace created here receives a copy of the
        ``main`` secret bundle. The copy happens once; later changes to
        ``main`` are not propagated.
        """
        namespace = namespace_for(project.name, branch)
        created = await self.ensure_namespace(namespace)
        if created and not is_canonical_branch(branch):
            await self._seed_secrets(project, namespace)
        return namespace

    async def _seed_secrets(self, project: Project, namespace: str) -> None:
        bundle_name = secret_bundle_name(project.name)
        main_namespace = namespace_for(project.name, DEFAULT_BRANCH)
        bundle = await self._cluster.get_secret_bundle(main_namespace, bundle_name)
        if not bundle:
            logger.debug(f"No secrets in {main_namespace} to seed {namespace} with")
            return
        logger.info(f"Seeding {len(bundle)} secrets from {main_namespace} into {namespace}")
        await self._cluster.set_secret_bundle(namespace, bundle_name, bundle)

    # =========================================================================
    # Service removal
    # =========================================================================

    async def delete_ingress_for_host(self, namespace: str, host: str) -> bool:
        """Delete the ingress routing ``host``.

        Returns:
            False if no ingress in the namespace routes the host
        """
        for ingress in await self._cluster.list_ingresses(namespace):
            if host in ingress_hosts(ingress):
                return await self._cluster.delete_ingress(namespace, ingress["metadata"]["name"])
        logger.debug(f"No ingress for host {host} in {namespace}")
        return False

    async def remove_service(
        self,
        namespace: str,
        record: ServiceRecord,
        *,
        report: TeardownReport | None = None,
    ) -> None:
        """Delete a service's workload, network object and ingress, then its record.

        Without a report every failure propagates. With a report, cluster
        failures are recorded in it and removal carries on; a failure to
        delete the record always propagates.
        """
        steps: list[tuple[str, str, Callable[[], Awaitable[bool]]]] = [
            ("Deployment", record.name, lambda: self._cluster.delete_workload(namespace, record.name)),
            ("Service", record.name, lambda: self._cluster.delete_network(namespace, record.name)),
        ]
        if record.ingress:
            host = record.ingress
            steps.append(("Ingress", host, lambda: self.delete_ingress_for_host(namespace, host)))

        for kind, name, step in steps:
            if report is None:
                await step()
            else:
                await self._attempt(report, kind, name, step)

        await self._store.delete_service(record.id)
        if report is not None:
            report.deleted_services.append(record.name)

    async def _attempt(
        self,
        report: TeardownReport,
        kind: str,
        name: str,
        step: Callable[[], Awaitable[bool]],
    ) -> None:
        try:
            await step()
        except ClusterError as e:
            logger.error(f"Failed to delete {kind} '{name}' in {report.namespace}: {e}")
            report.failures.append(TeardownFailure(kind=kind, name=name, error=str(e)))

    # =========================================================================
    # Branch teardown
    # =========================================================================

    async def delete_branch(self, project: Project, branch: str) -> TeardownReport:
        """Tear down every service, volume and the namespace of a branch.

        Cluster objects are deleted best-effort: failures end up in the
        returned report. Failing to delete persisted rows or the namespace
        aborts the teardown.

        Raises:
            BranchTeardownError: If a record, a volume row or the namespace
                                 could not be deleted
        """
        namespace = namespace_for(project.name, branch)
        report = TeardownReport(namespace=namespace)

        async with self._locks.hold(namespace):
            logger.info(f"Tearing down branch '{branch}' of {project.name} ({namespace})")
            try:
                for record in await self._store.list_services(project.id, branch):
                    await self.remove_service(namespace, record, report=report)

                volumes = await self._store.list_unused_volumes(project.id, branch)
                for volume in volumes:
                    claim = storage_claim_name(volume.identifier)
                    await self._attempt(
                        report,
                        "PersistentVolumeClaim",
                        claim,
                        lambda claim=claim: self._cluster.delete_storage_claim(namespace, claim),
                    )
                await self._store.delete_unused_volumes(project.id, branch)
                report.deleted_volumes.extend(volume.volume_name for volume in volumes)
            except StoreError as e:
                logger.error(f"Aborting teardown of {namespace}: {e}")
                raise BranchTeardownError(f"failed to delete records of {namespace}", report) from e

            try:
                await self._cluster.delete_namespace(namespace)
            except ClusterError as e:
                logger.error(f"Aborting teardown of {namespace}: {e}")
                raise BranchTeardownError(f"failed to delete namespace {namespace}", report) from e
            report.namespace_deleted = True

        if report.failures:
            logger.warning(
                f"Branch {namespace} torn down with {len(report.failures)} cluster failures"
            )
        return report
