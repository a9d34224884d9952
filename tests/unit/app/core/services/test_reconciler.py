"""Unit tests for deployment reconciliation against the in-memory cluster."""

import re

import pytest

from nimbus.app.core.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    UnprocessableEntityError,
)
from nimbus.app.core.manifest import Manifest, parse_manifest
from nimbus.app.core.services.reconciler import DeploymentReconciler
from nimbus.app.runtime.config.config_data import ClusterConfig
from tests.fixtures import TEST_DOMAIN

PUBLIC_WEB = """
app: demo
services:
  - name: web
    image: ghcr.io/acme/web:1.0
    template: http
    public: true
    network:
      ports: [8080]
"""

HOST_URL = re.compile(rf"^https://[0-9a-f]{{16}}\.{re.escape(TEST_DOMAIN)}$")


def _manifest(services: str, *, app: str = "demo", extra: str = "") -> Manifest:
    return parse_manifest(f"app: {app}\n{extra}services:\n{services}")


class TestPublicHttpService:
    @pytest.mark.asyncio
    async def test_first_deploy_creates_namespace_and_ingress(
        self, reconciler, cluster, store, project
    ):
        urls = await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))

        assert "demo" in cluster.namespaces
        assert list(urls) == ["web"]
        assert len(urls["web"]) == 1
        assert HOST_URL.match(urls["web"][0])

        host = urls["web"][0].removeprefix("https://")
        ingress = await cluster.get_ingress("demo", "web-ingress")
        assert ingress["spec"]["rules"][0]["host"] == host
        record = await store.get_service(project.id, "main", "web")
        assert record.ingress == host
        assert record.node_ports == []

    @pytest.mark.asyncio
    async def test_minimal_http_manifest(self, reconciler, cluster, project):
        manifest = parse_manifest(
            "app: demo\nservices:\n  - {name: web, template: http, public: true}\n"
        )

        urls = await reconciler.deploy(project, "main", manifest)

        assert "demo" in cluster.namespaces
        assert list(urls) == ["web"]
        assert HOST_URL.match(urls["web"][0])
        assert await reconciler.deploy(project, "main", manifest) == urls

    @pytest.mark.asyncio
    async def test_redeploy_keeps_the_host(self, reconciler, cluster, project):
        first = await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))
        second = await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))

        assert first == second
        assert len(await cluster.list_ingresses("demo")) == 1

    @pytest.mark.asyncio
    async def test_redeploy_rolls_the_workload(self, reconciler, cluster, project):
        await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))
        await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))

        assert ("update", "Deployment", "web") in cluster.mutating_calls()

    @pytest.mark.asyncio
    async def test_toggle_private_removes_ingress_and_host(
        self, reconciler, cluster, store, project
    ):
        await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))

        urls = await reconciler.deploy(
            project, "main", parse_manifest(PUBLIC_WEB.replace("public: true", "public: false"))
        )

        assert urls == {"web": []}
        assert await cluster.list_ingresses("demo") == []
        record = await store.get_service(project.id, "main", "web")
        assert record.ingress is None

    @pytest.mark.asyncio
    async def test_toggle_public_again_allocates_one_new_host(
        self, reconciler, cluster, project
    ):
        private = parse_manifest(PUBLIC_WEB.replace("public: true", "public: false"))
        await reconciler.deploy(project, "main", private)

        urls = await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))

        assert HOST_URL.match(urls["web"][0])
        assert len(await cluster.list_ingresses("demo")) == 1


class TestPostgresDefaults:
    @pytest.mark.asyncio
    async def test_first_deploy(self, reconciler, cluster, store, project):
        urls = await reconciler.deploy(
            project, "main", _manifest("  - name: db\n    template: postgres\n")
        )

        assert urls == {"db": []}
        workload = await cluster.get_workload("demo", "db")
        container = workload["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == "postgres:13"
        assert {env["name"] for env in container["env"]} == {
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_DB",
        }
        claims = cluster.objects["PersistentVolumeClaim"]
        assert len(claims) == 1
        network = await cluster.get_network("demo", "db")
        assert network["spec"]["type"] == "ClusterIP"
        record = await store.get_service(project.id, "main", "db")
        assert record.node_ports == []
        assert record.ingress is None

    @pytest.mark.asyncio
    async def test_public_node_ports_are_stable(self, reconciler, cluster, store, project):
        manifest = _manifest("  - name: db\n    template: postgres\n    public: true\n")

        first = await reconciler.deploy(project, "main", manifest)
        second = await reconciler.deploy(project, "main", manifest)

        assert first == second
        assert first["db"] == [f"{TEST_DOMAIN}:30000"]
        record = await store.get_service(project.id, "main", "db")
        assert record.node_ports == [30000]

    @pytest.mark.asyncio
    async def test_volume_claim_is_reused_on_redeploy(self, reconciler, cluster, project):
        manifest = _manifest("  - name: db\n    template: postgres\n")

        await reconciler.deploy(project, "main", manifest)
        await reconciler.deploy(project, "main", manifest)

        assert len(cluster.objects["PersistentVolumeClaim"]) == 1


class TestNodePortExposure:
    PUBLIC_API = (
        "  - name: api\n    image: acme/api\n    public: true\n"
        "    network:\n      ports: [8080, 9090]\n"
    )

    @pytest.mark.asyncio
    async def test_each_port_keeps_its_node_port(self, reconciler, cluster, store, project):
        first = await reconciler.deploy(project, "main", _manifest(self.PUBLIC_API))
        second = await reconciler.deploy(project, "main", _manifest(self.PUBLIC_API))

        assert first == {"api": [f"{TEST_DOMAIN}:30000", f"{TEST_DOMAIN}:30001"]}
        assert second == first
        network = await cluster.get_network("demo", "api")
        assert network["spec"]["type"] == "NodePort"
        assert [port["nodePort"] for port in network["spec"]["ports"]] == [30000, 30001]
        record = await store.get_service(project.id, "main", "api")
        assert record.node_ports == [30000, 30001]

    @pytest.mark.asyncio
    async def test_private_clears_node_ports(self, reconciler, cluster, store, project):
        await reconciler.deploy(project, "main", _manifest(self.PUBLIC_API))

        urls = await reconciler.deploy(
            project, "main", _manifest(self.PUBLIC_API.replace("public: true", "public: false"))
        )

        assert urls == {"api": []}
        network = await cluster.get_network("demo", "api")
        assert network["spec"]["type"] == "ClusterIP"
        assert all("nodePort" not in port for port in network["spec"]["ports"])
        record = await store.get_service(project.id, "main", "api")
        assert record.node_ports == []

    @pytest.mark.asyncio
    async def test_dropping_ports_removes_network_object(
        self, reconciler, cluster, store, project
    ):
        await reconciler.deploy(project, "main", _manifest(self.PUBLIC_API))

        urls = await reconciler.deploy(
            project, "main", _manifest("  - name: api\n    image: acme/api\n    public: true\n")
        )

        assert urls == {"api": []}
        assert await cluster.get_network("demo", "api") is None
        assert await cluster.get_workload("demo", "api") is not None
        record = await store.get_service(project.id, "main", "api")
        assert record.node_ports == []


class TestServiceSet:
    @pytest.mark.asyncio
    async def test_one_record_per_service(self, reconciler, store, project):
        manifest = _manifest(
            "  - {name: web, image: acme/web}\n"
            "  - {name: worker, image: acme/worker}\n"
            "  - {name: cache, template: redis}\n"
        )

        urls = await reconciler.deploy(project, "main", manifest)

        assert set(urls) == {"web", "worker", "cache"}
        records = await store.list_services(project.id, "main")
        assert sorted(record.name for record in records) == ["cache", "web", "worker"]

    @pytest.mark.asyncio
    async def test_removed_service_is_cleaned_up(self, reconciler, cluster, store, project):
        with_db = parse_manifest(PUBLIC_WEB + "  - {name: db, template: postgres}\n")
        await reconciler.deploy(project, "main", with_db)

        await reconciler.deploy(
            project, "main", _manifest("  - {name: db, template: postgres}\n")
        )

        assert await cluster.get_workload("demo", "web") is None
        assert await cluster.get_network("demo", "web") is None
        assert await cluster.list_ingresses("demo") == []
        assert await store.get_service(project.id, "main", "web") is None
        assert await store.get_service(project.id, "main", "db") is not None

    @pytest.mark.asyncio
    async def test_service_without_ports_has_no_network_object(
        self, reconciler, cluster, project
    ):
        await reconciler.deploy(project, "main", _manifest("  - {name: worker, image: x}\n"))

        assert await cluster.get_workload("demo", "worker") is not None
        assert await cluster.get_network("demo", "worker") is None

    @pytest.mark.asyncio
    async def test_dropping_arch_removes_node_affinity(self, reconciler, cluster, project):
        await reconciler.deploy(
            project, "main", _manifest("  - {name: worker, image: x, arch: arm64}\n")
        )

        await reconciler.deploy(project, "main", _manifest("  - {name: worker, image: x}\n"))

        workload = await cluster.get_workload("demo", "worker")
        assert "affinity" not in workload["spec"]["template"]["spec"]

    @pytest.mark.asyncio
    async def test_secrets_are_substituted(self, reconciler, cluster, project):
        await cluster.create_namespace("demo")
        await cluster.set_secret_bundle("demo", "demo-env", {"TOKEN": "abc"})
        manifest = _manifest(
            "  - name: api\n    image: x\n    env:\n"
            "      - {name: TOKEN, value: '${TOKEN}'}\n"
            "      - {name: OTHER, value: '${OTHER}'}\n"
        )

        await reconciler.deploy(project, "main", manifest)

        workload = await cluster.get_workload("demo", "api")
        env = workload["spec"]["template"]["spec"]["containers"][0]["env"]
        assert env == [
            {"name": "TOKEN", "value": "abc"},
            {"name": "OTHER", "value": "${OTHER}"},
        ]


class TestBranches:
    @pytest.mark.asyncio
    async def test_missing_branch_defaults_to_main(self, reconciler, store, project):
        await reconciler.deploy(project, None, _manifest("  - {name: api, image: x}\n"))

        assert await store.get_service(project.id, "main", "api") is not None

    @pytest.mark.asyncio
    async def test_preview_branch_gets_its_own_namespace(
        self, reconciler, cluster, store, project
    ):
        await cluster.create_namespace("demo")
        await cluster.set_secret_bundle("demo", "demo-env", {"TOKEN": "abc"})

        await reconciler.deploy(project, "feature/x", _manifest("  - {name: api, image: x}\n"))

        assert await cluster.get_workload("demo-feature-x", "api") is not None
        assert await cluster.get_secret_bundle("demo-feature-x", "demo-env") == {"TOKEN": "abc"}
        assert await store.get_service(project.id, "feature/x", "api") is not None


class TestValidation:
    @pytest.mark.asyncio
    async def test_duplicate_names_touch_nothing(self, reconciler, cluster, project):
        manifest = _manifest("  - {name: web, image: a}\n  - {name: web, image: b}\n")

        with pytest.raises(UnprocessableEntityError):
            await reconciler.deploy(project, "main", manifest)

        assert cluster.calls == []

    @pytest.mark.asyncio
    async def test_disabled_previews_touch_nothing(self, reconciler, cluster, project):
        manifest = _manifest(
            "  - {name: web, image: a}\n", extra="allowBranchPreviews: false\n"
        )

        with pytest.raises(ConflictError):
            await reconciler.deploy(project, "feature-x", manifest)

        assert cluster.calls == []

    @pytest.mark.asyncio
    async def test_disabled_previews_still_allow_main(self, reconciler, project):
        manifest = _manifest(
            "  - {name: web, image: a}\n", extra="allowBranchPreviews: false\n"
        )
        assert await reconciler.deploy(project, "master", manifest) == {"web": []}

    @pytest.mark.asyncio
    async def test_app_name_must_match_project(self, reconciler, cluster, project):
        with pytest.raises(BadRequestError):
            await reconciler.deploy(
                project, "main", _manifest("  - {name: web, image: a}\n", app="other")
            )
        assert cluster.calls == []

    @pytest.mark.asyncio
    async def test_missing_storage_class_is_internal(
        self, cluster, store, lifecycle, spec_generator, locks, project
    ):
        reconciler = DeploymentReconciler(
            cluster, store, lifecycle, spec_generator, locks, ClusterConfig(storage_class="")
        )

        with pytest.raises(InternalError):
            await reconciler.deploy(project, "main", parse_manifest(PUBLIC_WEB))
        assert cluster.calls == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_cluster_failure_is_internal_and_not_rolled_back(
        self, reconciler, cluster, store, project
    ):
        cluster.inject_failure("create", "Deployment", "worker")
        manifest = _manifest("  - {name: api, image: x}\n  - {name: worker, image: y}\n")

        with pytest.raises(InternalError) as excinfo:
            await reconciler.deploy(project, "main", manifest)

        assert excinfo.value.message == "internal server error"
        assert await cluster.get_workload("demo", "api") is not None
        assert await store.get_service(project.id, "main", "api") is not None
        assert await store.get_service(project.id, "main", "worker") is None

    @pytest.mark.asyncio
    async def test_orphan_removal_failure_aborts_deploy(
        self, reconciler, cluster, store, project
    ):
        await reconciler.deploy(project, "main", _manifest("  - {name: old, image: x}\n"))
        cluster.inject_failure("delete", "Deployment", "old")

        with pytest.raises(InternalError):
            await reconciler.deploy(project, "main", _manifest("  - {name: new, image: x}\n"))

        assert await store.get_service(project.id, "main", "old") is not None
        assert await cluster.get_workload("demo", "new") is None
