"""Project membership, deletion and secret bundles."""

from __future__ import annotations

import re
import secrets as tokens

from loguru import logger

from nimbus.app.core.errors import (
    BadRequestError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from nimbus.app.core.naming import (
    DEFAULT_BRANCH,
    is_canonical_branch,
    namespace_for,
    secret_bundle_name,
)
from nimbus.app.core.services.database import StateStore
from nimbus.app.core.services.lifecycle import BranchTeardownError, LifecycleManager
from nimbus.app.entities import Project, User
from nimbus.infra.k8s import ClusterGateway, SecretBundle

# Project names become namespace prefixes, so they must lowercase to a DNS label
_PROJECT_NAME = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]{0,38}[A-Za-z0-9])?$")
_SECRET_KEY = re.compile(r"^[-._a-zA-Z0-9]+$")


def validate_secret_bundle(secrets: SecretBundle) -> SecretBundle:
    """Reject keys Kubernetes would not accept in a Secret.

    Raises:
        BadRequestError: On an invalid key
    """
    for key in secrets:
        if not _SECRET_KEY.match(key):
            raise BadRequestError(f"invalid secret name '{key}'")
    return dict(secrets)


class ProjectService:
    def __init__(
        self, store: StateStore, cluster: ClusterGateway, lifecycle: LifecycleManager
    ) -> None:
        self._store = store
        self._cluster = cluster
        self._lifecycle = lifecycle

    async def create_project(self, user: User, name: str) -> Project:
        """Create a project with ``user`` as its first member.

        Raises:
            BadRequestError: If the name cannot be used as a namespace
            ConflictError: If the name is taken
        """
        if not _PROJECT_NAME.match(name):
            raise BadRequestError(
                "project names must be 1-40 letters, digits or '-', "
                "starting and ending with a letter or digit"
            )
        if await self._store.get_project_by_name(name) is not None:
            raise ConflictError(
                f"project '{name}' already exists", code=ErrorCode.PROJECT_ALREADY_EXISTS
            )
        project = await self._store.create_project(name, user.id)
        logger.info(f"Created project {name} for user {user.name}")
        return project

    async def list_projects(self, user: User) -> list[Project]:
        return await self._store.list_projects_for_user(user.id)

    async def authorize(self, user: User, name: str) -> Project:
        """Resolve a project the user is a member of.

        Raises:
            NotFoundError: If no project has that name
            ForbiddenError: If the user is not a member
        """
        project = await self._store.get_project_by_name(name)
        if project is None:
            raise NotFoundError(f"project '{name}' not found")
        if not await self._store.is_project_member(user.id, project.id):
            raise ForbiddenError(f"user does not have access to project '{name}'")
        return project

    async def issue_credential(self, user: User, name: str) -> str:
        """Generate a new deploy credential for the project.

        The previous credential stops working immediately.
        """
        project = await self.authorize(user, name)
        api_key = tokens.token_hex(32)
        await self._store.set_project_api_key(project.id, api_key)
        logger.info(f"Issued a new deploy credential for {project.name}")
        return api_key

    async def authorize_deploy(
        self, name: str, *, user: User | None, credential_project: Project | None
    ) -> Project:
        """Resolve the project a deploy targets.

        A project-scoped credential may deploy only its own project; a user
        must be a member.

        Raises:
            NotFoundError: If no project has that name
            ForbiddenError: If the caller may not deploy it
        """
        project = await self._store.get_project_by_name(name)
        if project is None:
            raise NotFoundError(f"project '{name}' not found")
        if credential_project is not None:
            if credential_project.id != project.id:
                raise ForbiddenError("credential does not belong to this project")
            return project
        if user is None or not await self._store.is_project_member(user.id, project.id):
            raise ForbiddenError("user does not have permissions to deploy project")
        return project

    async def delete_branch(self, user: User, name: str, branch: str) -> None:
        project = await self.authorize(user, name)
        try:
            await self._lifecycle.delete_branch(project, branch)
        except BranchTeardownError as e:
            raise InternalError() from e

    async def delete_project(self, user: User, name: str) -> None:
        """Tear down every branch of a project, then delete the project."""
        project = await self.authorize(user, name)
        branches = await self._store.list_project_branches(project.id)
        if DEFAULT_BRANCH not in branches:
            branches.append(DEFAULT_BRANCH)
        for branch in branches:
            try:
                await self._lifecycle.delete_branch(project, branch)
            except BranchTeardownError as e:
                raise InternalError() from e
        await self._store.delete_project(project.id)
        logger.info(f"Deleted project {name} and {len(branches)} branches")

    async def get_secrets(self, user: User, name: str) -> SecretBundle:
        """The project's secrets as stored in its ``main`` namespace."""
        project = await self.authorize(user, name)
        return await self._cluster.get_secret_bundle(
            namespace_for(project.name, DEFAULT_BRANCH), secret_bundle_name(project.name)
        )

    async def get_secret_names(self, user: User, name: str) -> list[str]:
        return sorted(await self.get_secrets(user, name))

    async def replace_secrets(self, user: User, name: str, secrets: SecretBundle) -> list[str]:
        """Replace the secret bundle in every branch namespace of the project.

        Returns:
            The namespaces that were updated
        """
        project = await self.authorize(user, name)
        secrets = validate_secret_bundle(secrets)
        branches = await self._store.list_project_branches(project.id)
        if not any(is_canonical_branch(branch) for branch in branches):
            branches.append(DEFAULT_BRANCH)

        bundle_name = secret_bundle_name(project.name)
        updated = []
        for branch in branches:
            namespace = namespace_for(project.name, branch)
            await self._lifecycle.ensure_namespace(namespace)
            await self._cluster.set_secret_bundle(namespace, bundle_name, secrets)
            updated.append(namespace)
        logger.info(f"Updated {len(secrets)} secrets of {project.name} in {updated}")
        return updated
