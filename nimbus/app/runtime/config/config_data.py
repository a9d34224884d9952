"""Typed configuration loaded from ``config.yaml``."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_INGRESS_ANNOTATIONS: dict[str, str] = {
    "nginx.ingress.kubernetes.io/rewrite-target": "/",
    "nginx.ingress.kubernetes.io/ssl-redirect": "true",
    "nginx.ingress.kubernetes.io/cors-allow-origin": "*",
}


class AppConfig(BaseModel):
    environment: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = "INFO"


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///nimbus.db"
    echo: bool = False

    @property
    def connection_string(self) -> str:
        return self.url


class ClusterConfig(BaseModel):
    """Where and how workloads are reconciled."""

    backend: Literal["kr8s", "memory"] = "kr8s"
    kubeconfig: str | None = None
    domain: str = "localhost"
    storage_class: str = ""
    cluster_issuer: str = "letsencrypt-prod"
    ingress_annotations: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_INGRESS_ANNOTATIONS)
    )


class DeployConfig(BaseModel):
    timeout_seconds: float = Field(default=300.0, gt=0)
    max_manifest_bytes: int = Field(default=10 << 20, gt=0)
    default_volume_size_mib: int = Field(default=100, gt=0)
    log_tail_lines: int = Field(default=20, ge=0)


class ConfigData(BaseModel):
    app: AppConfig = Field(default_factory=AppConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
