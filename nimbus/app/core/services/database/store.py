"""Persisted state store.

Keeps the metadata the cluster does not retain: users, projects and their
members, exposure of reconciled services (node ports, ingress hosts) and the
stable identifiers of declared volumes.

``StateStore`` is the contract the engine depends on; ``SqlStateStore`` is the
SQLModel implementation. Each call is one unit of work executed on a worker
thread over a shared engine, so a store instance is safe for concurrent use.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar, override

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from nimbus.app.entities import (
    Project,
    ProjectMember,
    ServiceRecord,
    User,
    VolumeRecord,
)

R = TypeVar("R")


class StoreError(Exception):
    """Raised when the relational store fails."""


@dataclass(frozen=True)
class UserServiceRow:
    """A service record joined with the name of its project."""

    project_name: str
    branch: str
    name: str


class StateStore(ABC):
    """Abstract persisted state store.

    Lookups return ``None`` when nothing matches. Any failure of the
    underlying storage raises :class:`StoreError`.
    """

    # =========================================================================
    # Users
    # =========================================================================

    @abstractmethod
    async def create_user(self, name: str, api_key: str) -> User: ...

    @abstractmethod
    async def get_user_by_api_key(self, api_key: str) -> User | None: ...

    # =========================================================================
    # Projects
    # =========================================================================

    @abstractmethod
    async def create_project(
        self, name: str, owner_id: uuid.UUID, api_key: str | None = None
    ) -> Project:
        """Create a project and make ``owner_id`` its first member."""
        ...

    @abstractmethod
    async def get_project_by_name(self, name: str) -> Project | None: ...

    @abstractmethod
    async def get_project_by_api_key(self, api_key: str) -> Project | None: ...

    @abstractmethod
    async def set_project_api_key(self, project_id: uuid.UUID, api_key: str) -> None:
        """Replace the project-scoped deploy credential."""
        ...

    @abstractmethod
    async def list_projects_for_user(self, user_id: uuid.UUID) -> list[Project]: ...

    @abstractmethod
    async def add_project_member(self, user_id: uuid.UUID, project_id: uuid.UUID) -> None: ...

    @abstractmethod
    async def is_project_member(self, user_id: uuid.UUID, project_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def list_project_branches(self, project_id: uuid.UUID) -> list[str]:
        """Distinct branches that hold a service record or a volume record."""
        ...

    @abstractmethod
    async def delete_project(self, project_id: uuid.UUID) -> None:
        """Delete a project, its memberships and any remaining records."""
        ...

    # =========================================================================
    # Service records
    # =========================================================================

    @abstractmethod
    async def list_services(
        self, project_id: uuid.UUID, branch: str
    ) -> list[ServiceRecord]: ...

    @abstractmethod
    async def get_service(
        self, project_id: uuid.UUID, branch: str, name: str
    ) -> ServiceRecord | None: ...

    @abstractmethod
    async def list_services_for_user(self, user_id: uuid.UUID) -> list[UserServiceRow]: ...

    @abstractmethod
    async def create_service(
        self,
        project_id: uuid.UUID,
        branch: str,
        name: str,
        *,
        node_ports: list[int] | None = None,
        ingress: str | None = None,
    ) -> ServiceRecord: ...

    @abstractmethod
    async def update_service_exposure(
        self, service_id: uuid.UUID, *, node_ports: list[int], ingress: str | None
    ) -> ServiceRecord: ...

    @abstractmethod
    async def delete_service(self, service_id: uuid.UUID) -> None: ...

    @abstractmethod
    async def ingress_host_in_use(self, host: str) -> bool: ...

    # =========================================================================
    # Volume identifiers
    # =========================================================================

    @abstractmethod
    async def get_volume(self, namespace: str, volume_name: str) -> VolumeRecord | None: ...

    @abstractmethod
    async def create_volume(self, record: VolumeRecord) -> VolumeRecord: ...

    @abstractmethod
    async def list_unused_volumes(
        self, project_id: uuid.UUID, branch: str, exclude: Iterable[str] = ()
    ) -> list[VolumeRecord]:
        """Volumes of a branch whose names are not in ``exclude``."""
        ...

    @abstractmethod
    async def delete_unused_volumes(
        self, project_id: uuid.UUID, branch: str, exclude: Iterable[str] = ()
    ) -> int:
        """Delete the rows ``list_unused_volumes`` would return."""
        ...


class SqlStateStore(StateStore):
    """StateStore backed by SQLModel sessions."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def _run(self, work: Callable[[Session], R]) -> R:
        def unit_of_work() -> R:
            with Session(self._engine, expire_on_commit=False) as session:
                return work(session)

        try:
            return await asyncio.to_thread(unit_of_work)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    # =========================================================================
    # Users
    # =========================================================================

    @override
    async def create_user(self, name: str, api_key: str) -> User:
        def work(session: Session) -> User:
            user = User(name=name, api_key=api_key)
            session.add(user)
            session.commit()
            return user

        return await self._run(work)

    @override
    async def get_user_by_api_key(self, api_key: str) -> User | None:
        return await self._run(
            lambda session: session.exec(select(User).where(User.api_key == api_key)).first()
        )

    # =========================================================================
    # Projects
    # =========================================================================

    @override
    async def create_project(
        self, name: str, owner_id: uuid.UUID, api_key: str | None = None
    ) -> Project:
        def work(session: Session) -> Project:
            project = Project(name=name, api_key=api_key)
            session.add(project)
            session.flush()
            session.add(ProjectMember(user_id=owner_id, project_id=project.id))
            session.commit()
            return project

        return await self._run(work)

    @override
    async def get_project_by_name(self, name: str) -> Project | None:
        return await self._run(
            lambda session: session.exec(select(Project).where(Project.name == name)).first()
        )

    @override
    async def get_project_by_api_key(self, api_key: str) -> Project | None:
        return await self._run(
            lambda session: session.exec(
                select(Project).where(Project.api_key == api_key)
            ).first()
        )

    @override
    async def set_project_api_key(self, project_id: uuid.UUID, api_key: str) -> None:
        def work(session: Session) -> None:
            project = session.get(Project, project_id)
            if project is None:
                raise StoreError(f"project {project_id} does not exist")
            project.api_key = api_key
            session.add(project)
            session.commit()

        await self._run(work)

    @override
    async def list_projects_for_user(self, user_id: uuid.UUID) -> list[Project]:
        def work(session: Session) -> list[Project]:
            statement = (
                select(Project)
                .join(ProjectMember, col(ProjectMember.project_id) == col(Project.id))
                .where(ProjectMember.user_id == user_id)
                .order_by(col(Project.name))
            )
            return list(session.exec(statement).all())

        return await self._run(work)

    @override
    async def add_project_member(self, user_id: uuid.UUID, project_id: uuid.UUID) -> None:
        def work(session: Session) -> None:
            if session.get(ProjectMember, (user_id, project_id)) is None:
                session.add(ProjectMember(user_id=user_id, project_id=project_id))
                session.commit()

        await self._run(work)

    @override
    async def is_project_member(self, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
        return await self._run(
            lambda session: session.get(ProjectMember, (user_id, project_id)) is not None
        )

    @override
    async def list_project_branches(self, project_id: uuid.UUID) -> list[str]:
        def work(session: Session) -> list[str]:
            branches: set[str] = set()
            for table in (ServiceRecord, VolumeRecord):
                statement = select(table.branch).where(table.project_id == project_id)
                branches.update(session.exec(statement.distinct()).all())
            return sorted(branches)

        return await self._run(work)

    @override
    async def delete_project(self, project_id: uuid.UUID) -> None:
        def work(session: Session) -> None:
            for table in (VolumeRecord, ServiceRecord, ProjectMember):
                rows = session.exec(select(table).where(table.project_id == project_id))
                for row in rows.all():
                    session.delete(row)
            project = session.get(Project, project_id)
            if project is not None:
                session.delete(project)
            session.commit()

        await self._run(work)

    # =========================================================================
    # Service records
    # =========================================================================

    @override
    async def list_services(
        self, project_id: uuid.UUID, branch: str
    ) -> list[ServiceRecord]:
        def work(session: Session) -> list[ServiceRecord]:
            statement = (
                select(ServiceRecord)
                .where(ServiceRecord.project_id == project_id, ServiceRecord.branch == branch)
                .order_by(col(ServiceRecord.name))
            )
            return list(session.exec(statement).all())

        return await self._run(work)

    @override
    async def get_service(
        self, project_id: uuid.UUID, branch: str, name: str
    ) -> ServiceRecord | None:
        return await self._run(
            lambda session: session.exec(
                select(ServiceRecord).where(
                    ServiceRecord.project_id == project_id,
                    ServiceRecord.branch == branch,
                    ServiceRecord.name == name,
                )
            ).first()
        )

    @override
    async def list_services_for_user(self, user_id: uuid.UUID) -> list[UserServiceRow]:
        def work(session: Session) -> list[UserServiceRow]:
            statement = (
                select(Project.name, ServiceRecord.branch, ServiceRecord.name)
                .join(Project, col(Project.id) == col(ServiceRecord.project_id))
                .join(ProjectMember, col(ProjectMember.project_id) == col(Project.id))
                .where(ProjectMember.user_id == user_id)
                .order_by(col(Project.name), col(ServiceRecord.branch), col(ServiceRecord.name))
            )
            return [
                UserServiceRow(project_name=project, branch=branch, name=name)
                for project, branch, name in session.exec(statement).all()
            ]

        return await self._run(work)

    @override
    async def create_service(
        self,
        project_id: uuid.UUID,
        branch: str,
        name: str,
        *,
        node_ports: list[int] | None = None,
        ingress: str | None = None,
    ) -> ServiceRecord:
        def work(session: Session) -> ServiceRecord:
            record = ServiceRecord(
                project_id=project_id,
                branch=branch,
                name=name,
                node_ports=list(node_ports or []),
                ingress=ingress,
            )
            session.add(record)
            session.commit()
            return record

        return await self._run(work)

    @override
    async def update_service_exposure(
        self, service_id: uuid.UUID, *, node_ports: list[int], ingress: str | None
    ) -> ServiceRecord:
        def work(session: Session) -> ServiceRecord:
            record = session.get(ServiceRecord, service_id)
            if record is None:
                raise StoreError(f"service record {service_id} not found")
            # Reassign so the JSON column is flagged as modified
            record.node_ports = list(node_ports)
            record.ingress = ingress
            session.add(record)
            session.commit()
            return record

        return await self._run(work)

    @override
    async def delete_service(self, service_id: uuid.UUID) -> None:
        def work(session: Session) -> None:
            record = session.get(ServiceRecord, service_id)
            if record is not None:
                session.delete(record)
                session.commit()

        await self._run(work)

    @override
    async def ingress_host_in_use(self, host: str) -> bool:
        return await self._run(
            lambda session: session.exec(
                select(ServiceRecord.id).where(ServiceRecord.ingress == host)
            ).first()
            is not None
        )

    # =========================================================================
    # Volume identifiers
    # =========================================================================

    @override
    async def get_volume(self, namespace: str, volume_name: str) -> VolumeRecord | None:
        return await self._run(
            lambda session: session.exec(
                select(VolumeRecord).where(
                    VolumeRecord.namespace == namespace,
                    VolumeRecord.volume_name == volume_name,
                )
            ).first()
        )

    @override
    async def create_volume(self, record: VolumeRecord) -> VolumeRecord:
        def work(session: Session) -> VolumeRecord:
            session.add(record)
            session.commit()
            return record

        return await self._run(work)

    @override
    async def list_unused_volumes(
        self, project_id: uuid.UUID, branch: str, exclude: Iterable[str] = ()
    ) -> list[VolumeRecord]:
        excluded = list(exclude)
        return await self._run(
            lambda session: _select_unused_volumes(session, project_id, branch, excluded)
        )

    @override
    async def delete_unused_volumes(
        self, project_id: uuid.UUID, branch: str, exclude: Iterable[str] = ()
    ) -> int:
        excluded = list(exclude)

        def work(session: Session) -> int:
            records = _select_unused_volumes(session, project_id, branch, excluded)
            for record in records:
                session.delete(record)
            session.commit()
            return len(records)

        return await self._run(work)


def _select_unused_volumes(
    session: Session, project_id: uuid.UUID, branch: str, excluded: list[str]
) -> list[VolumeRecord]:
    statement = select(VolumeRecord).where(
        VolumeRecord.project_id == project_id, VolumeRecord.branch == branch
    )
    if excluded:
        statement = statement.where(col(VolumeRecord.volume_name).not_in(excluded))
    return list(session.exec(statement.order_by(col(VolumeRecord.volume_name))).all())
