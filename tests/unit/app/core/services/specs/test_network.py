"""Unit tests for Service manifests."""

import uuid

from nimbus.app.core.manifest import ServiceDeclaration
from nimbus.app.core.services.specs.network import (
    assigned_node_ports,
    build_network,
    node_port_url,
)
from nimbus.app.entities import ServiceRecord


def _prior(node_ports: list[int]) -> ServiceRecord:
    return ServiceRecord(
        project_id=uuid.uuid4(), branch="main", name="db", node_ports=node_ports
    )


class TestBuildNetwork:
    def test_private_template_is_cluster_ip(self):
        network = build_network("demo", ServiceDeclaration(name="db", template="postgres"))

        assert network["kind"] == "Service"
        assert network["spec"]["type"] == "ClusterIP"
        assert network["spec"]["selector"] == {"app": "db"}
        assert network["spec"]["ports"] == [
            {"name": "postgres", "port": 5432, "targetPort": 5432}
        ]

    def test_public_template_is_node_port(self):
        service = ServiceDeclaration(name="db", template="postgres", public=True)

        network = build_network("demo", service)

        assert network["spec"]["type"] == "NodePort"
        assert "nodePort" not in network["spec"]["ports"][0]

    def test_prior_node_ports_reused_by_index(self):
        service = ServiceDeclaration(
            name="db", image="x", public=True, network={"ports": [7000, 7001]}
        )

        network = build_network("demo", service, _prior([31000]))

        assert network["spec"]["ports"] == [
            {"name": "port-0", "port": 7000, "targetPort": 7000, "nodePort": 31000},
            {"name": "port-1", "port": 7001, "targetPort": 7001},
        ]

    def test_prior_node_ports_ignored_when_private(self):
        service = ServiceDeclaration(name="db", template="postgres")

        network = build_network("demo", service, _prior([31000]))

        assert "nodePort" not in network["spec"]["ports"][0]

    def test_http_publishes_port_80(self):
        service = ServiceDeclaration(
            name="web", image="x", template="http", public=True, network={"ports": [8080, 9090]}
        )

        network = build_network("demo", service)

        assert network["spec"]["type"] == "ClusterIP"
        assert network["spec"]["ports"] == [{"name": "http", "port": 80, "targetPort": 8080}]

    def test_http_without_ports_targets_80(self):
        service = ServiceDeclaration(name="web", image="x", template="http")
        assert build_network("demo", service)["spec"]["ports"][0]["targetPort"] == 80


def test_assigned_node_ports():
    network = {"spec": {"ports": [{"port": 1, "nodePort": 30001}, {"port": 2}]}}
    assert assigned_node_ports(network) == [30001]


def test_node_port_url():
    assert node_port_url("apps.example.com", 30001) == "apps.example.com:30001"
