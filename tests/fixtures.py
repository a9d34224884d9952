"""Shared fixtures: an in-memory cluster, an SQLite state store and a wired engine."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from nimbus.app.api.http.app import create_app
from nimbus.app.api.http.app_data import ApplicationDependencies, build_dependencies
from nimbus.app.core.services.database import DbManageService, SqlStateStore
from nimbus.app.core.services.lifecycle import LifecycleManager
from nimbus.app.core.services.locks import BranchLockRegistry
from nimbus.app.core.services.reconciler import DeploymentReconciler
from nimbus.app.core.services.specs import SpecGenerator, VolumeResolver
from nimbus.app.entities import Project, User
from nimbus.app.runtime.config.config_data import (
    AppConfig,
    ClusterConfig,
    ConfigData,
    DatabaseConfig,
)
from nimbus.infra.k8s import InMemoryClusterGateway

TEST_DOMAIN = "apps.example.com"
TEST_STORAGE_CLASS = "standard"
USER_API_KEY = "user-key-0001"
OTHER_API_KEY = "user-key-0002"


@pytest.fixture
def test_config() -> ConfigData:
    return ConfigData(
        app=AppConfig(environment="test"),
        database=DatabaseConfig(url="sqlite://"),
        cluster=ClusterConfig(
            backend="memory", domain=TEST_DOMAIN, storage_class=TEST_STORAGE_CLASS
        ),
    )


@pytest.fixture
def cluster() -> InMemoryClusterGateway:
    return InMemoryClusterGateway()


@pytest.fixture
def database(test_config: ConfigData) -> Iterator[DbManageService]:
    service = DbManageService(test_config.database)
    service.create_all()
    yield service
    service.dispose()


@pytest.fixture
def store(database: DbManageService) -> SqlStateStore:
    return SqlStateStore(database.engine)


@pytest.fixture
def locks() -> BranchLockRegistry:
    return BranchLockRegistry()


@pytest.fixture
def lifecycle(
    cluster: InMemoryClusterGateway, store: SqlStateStore, locks: BranchLockRegistry
) -> LifecycleManager:
    return LifecycleManager(cluster, store, locks)


@pytest.fixture
def spec_generator(
    cluster: InMemoryClusterGateway, store: SqlStateStore, test_config: ConfigData
) -> SpecGenerator:
    return SpecGenerator(
        VolumeResolver(cluster, store, storage_class=test_config.cluster.storage_class)
    )


@pytest.fixture
def reconciler(
    cluster: InMemoryClusterGateway,
    store: SqlStateStore,
    lifecycle: LifecycleManager,
    spec_generator: SpecGenerator,
    locks: BranchLockRegistry,
    test_config: ConfigData,
) -> DeploymentReconciler:
    return DeploymentReconciler(
        cluster, store, lifecycle, spec_generator, locks, test_config.cluster
    )


@pytest_asyncio.fixture
async def user(store: SqlStateStore) -> User:
    return await store.create_user("alice", USER_API_KEY)


@pytest_asyncio.fixture
async def other_user(store: SqlStateStore) -> User:
    return await store.create_user("mallory", OTHER_API_KEY)


@pytest_asyncio.fixture
async def project(store: SqlStateStore, user: User) -> Project:
    return await store.create_project("demo", user.id)


@pytest.fixture
def app_dependencies(
    test_config: ConfigData,
    cluster: InMemoryClusterGateway,
    database: DbManageService,
) -> ApplicationDependencies:
    return build_dependencies(test_config, cluster=cluster, database_service=database)


@pytest.fixture
def app(app_dependencies: ApplicationDependencies) -> FastAPI:
    return create_app(dependencies=app_dependencies)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Client without lifespan: the database fixture owns table creation."""
    return TestClient(app)


# Sync counterparts for TestClient based tests, which run outside an event loop


@pytest.fixture
def api_user(store: SqlStateStore) -> User:
    return asyncio.run(store.create_user("alice", USER_API_KEY))


@pytest.fixture
def api_project(store: SqlStateStore, api_user: User) -> Project:
    return asyncio.run(store.create_project("demo", api_user.id))


@pytest.fixture
def auth_headers(api_user: User) -> dict[str, str]:
    return {"X-API-Key": USER_API_KEY}
