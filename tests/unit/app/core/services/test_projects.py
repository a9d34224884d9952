"""Unit tests for project membership, credentials and secret bundles."""

import pytest

from nimbus.app.core.errors import (
    BadRequestError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from nimbus.app.core.manifest import parse_manifest
from nimbus.app.core.services.projects import ProjectService, validate_secret_bundle


@pytest.fixture
def projects(store, cluster, lifecycle) -> ProjectService:
    return ProjectService(store, cluster, lifecycle)


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_creator_becomes_member(self, projects, store, user):
        project = await projects.create_project(user, "shop")

        assert await store.is_project_member(user.id, project.id)
        assert [p.name for p in await projects.list_projects(user)] == ["shop"]

    @pytest.mark.asyncio
    async def test_duplicate_name(self, projects, user, project):
        with pytest.raises(ConflictError) as excinfo:
            await projects.create_project(user, project.name)
        assert excinfo.value.code == ErrorCode.PROJECT_ALREADY_EXISTS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "-shop", "shop-", "sh op", "a" * 41])
    async def test_invalid_name(self, projects, user, name):
        with pytest.raises(BadRequestError):
            await projects.create_project(user, name)


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_unknown_project(self, projects, user):
        with pytest.raises(NotFoundError):
            await projects.authorize(user, "missing")

    @pytest.mark.asyncio
    async def test_non_member(self, projects, other_user, project):
        with pytest.raises(ForbiddenError):
            await projects.authorize(other_user, project.name)


class TestAuthorizeDeploy:
    @pytest.mark.asyncio
    async def test_member(self, projects, user, project):
        resolved = await projects.authorize_deploy("demo", user=user, credential_project=None)
        assert resolved.id == project.id

    @pytest.mark.asyncio
    async def test_project_credential_for_its_own_project(self, projects, store, user, project):
        other = await store.create_project("other", user.id)

        assert (
            await projects.authorize_deploy("demo", user=None, credential_project=project)
        ).id == project.id
        with pytest.raises(ForbiddenError):
            await projects.authorize_deploy("demo", user=None, credential_project=other)

    @pytest.mark.asyncio
    async def test_non_member(self, projects, other_user, project):
        with pytest.raises(ForbiddenError):
            await projects.authorize_deploy("demo", user=other_user, credential_project=None)

    @pytest.mark.asyncio
    async def test_unknown_project(self, projects, user):
        with pytest.raises(NotFoundError):
            await projects.authorize_deploy("missing", user=user, credential_project=None)


class TestIssueCredential:
    @pytest.mark.asyncio
    async def test_rotates_the_credential(self, projects, store, user, project):
        first = await projects.issue_credential(user, "demo")
        second = await projects.issue_credential(user, "demo")

        assert first != second
        assert await store.get_project_by_api_key(first) is None
        assert (await store.get_project_by_api_key(second)).id == project.id


class TestSecrets:
    @pytest.mark.asyncio
    async def test_replace_creates_main_namespace(self, projects, cluster, user, project):
        namespaces = await projects.replace_secrets(user, "demo", {"B": "2", "A": "1"})

        assert namespaces == ["demo"]
        assert await projects.get_secrets(user, "demo") == {"A": "1", "B": "2"}
        assert await projects.get_secret_names(user, "demo") == ["A", "B"]

    @pytest.mark.asyncio
    async def test_replace_updates_every_branch(
        self, projects, reconciler, cluster, user, project
    ):
        manifest = parse_manifest("app: demo\nservices:\n  - {name: api, image: x}\n")
        await reconciler.deploy(project, "main", manifest)
        await reconciler.deploy(project, "dev", manifest)

        namespaces = await projects.replace_secrets(user, "demo", {"TOKEN": "t"})

        assert sorted(namespaces) == ["demo", "demo-dev"]
        assert await cluster.get_secret_bundle("demo-dev", "demo-env") == {"TOKEN": "t"}

    @pytest.mark.asyncio
    async def test_replace_removes_absent_keys(self, projects, user, project):
        await projects.replace_secrets(user, "demo", {"OLD": "1"})
        await projects.replace_secrets(user, "demo", {"NEW": "2"})

        assert await projects.get_secret_names(user, "demo") == ["NEW"]

    def test_invalid_secret_key(self):
        with pytest.raises(BadRequestError):
            validate_secret_bundle({"not valid": "x"})


class TestDeletion:
    @pytest.mark.asyncio
    async def test_delete_branch(self, projects, reconciler, cluster, store, user, project):
        manifest = parse_manifest("app: demo\nservices:\n  - {name: db, template: postgres}\n")
        await reconciler.deploy(project, "dev", manifest)

        await projects.delete_branch(user, "demo", "dev")

        assert "demo-dev" not in cluster.namespaces
        assert await store.list_services(project.id, "dev") == []
        assert await store.list_unused_volumes(project.id, "dev") == []

    @pytest.mark.asyncio
    async def test_delete_branch_failure_is_internal(self, projects, cluster, user, project):
        cluster.inject_failure("delete", "Namespace", "demo-dev")

        with pytest.raises(InternalError):
            await projects.delete_branch(user, "demo", "dev")

    @pytest.mark.asyncio
    async def test_delete_project(self, projects, reconciler, cluster, store, user, project):
        manifest = parse_manifest("app: demo\nservices:\n  - {name: api, image: x}\n")
        await reconciler.deploy(project, "main", manifest)
        await reconciler.deploy(project, "dev", manifest)

        await projects.delete_project(user, "demo")

        assert cluster.namespaces == {}
        assert await store.get_project_by_name("demo") is None

    @pytest.mark.asyncio
    async def test_delete_project_reaches_branches_without_services(
        self, projects, reconciler, cluster, store, user, project
    ):
        with_db = parse_manifest("app: demo\nservices:\n  - {name: db, template: postgres}\n")
        await reconciler.deploy(project, "dev", with_db)
        await reconciler.deploy(project, "dev", parse_manifest("app: demo\nservices: []\n"))
        assert await store.list_services(project.id, "dev") == []
        assert cluster.objects["PersistentVolumeClaim"]

        await projects.delete_project(user, "demo")

        assert cluster.namespaces == {}
        assert cluster.objects["PersistentVolumeClaim"] == {}
        assert await store.list_unused_volumes(project.id, "dev") == []
