"""Pydantic models for the ``nimbus.yaml`` service manifest.

Example manifest:

    app: demo
    allowBranchPreviews: true
    services:
      - name: web
        image: ghcr.io/acme/web:latest
        template: http
        public: true
        network:
          ports: [8080]
        env:
          - name: DATABASE_URL
            value: ${DATABASE_URL}
      - name: db
        template: postgres
"""

from __future__ import annotations

from collections import Counter
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from nimbus.app.core.errors import BadRequestError

TemplateName = Literal["postgres", "redis", "http"]


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EnvVar(_ManifestModel):
    """A single container environment variable."""

    name: str = Field(min_length=1)
    value: str = ""

    @property
    def secret_reference(self) -> str | None:
        """Key referenced by a value of the exact shape ``${KEY}``."""
        if len(self.value) > 3 and self.value.startswith("${") and self.value.endswith("}"):
            return self.value[2:-1]
        return None


class VolumeDeclaration(_ManifestModel):
    """A persistent volume mounted into the service container."""

    name: str = Field(min_length=1)
    mount_path: str = Field(alias="mountPath", min_length=1)
    size: int | None = Field(
        default=None, gt=0, description="Requested size in MiB"
    )


class NetworkDeclaration(_ManifestModel):
    ports: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_ports(self) -> NetworkDeclaration:
        for port in self.ports:
            if not 1 <= port <= 65535:
                raise ValueError(f"invalid port {port} - expected 1-65535")
        return self


class ServiceDeclaration(_ManifestModel):
    """Desired state of one service, as declared in the manifest."""

    name: str = Field(min_length=1)
    image: str | None = None
    template: TemplateName | None = None
    version: str | None = None
    replicas: int = Field(default=1, ge=0)
    network: NetworkDeclaration = Field(default_factory=NetworkDeclaration)
    env: list[EnvVar] = Field(default_factory=list)
    volumes: list[VolumeDeclaration] = Field(default_factory=list)
    public: bool = False
    arch: str | None = None
    command: list[str] | None = None
    args: list[str] | None = None

    @property
    def ports(self) -> list[int]:
        return self.network.ports


class Manifest(_ManifestModel):
    """The parsed ``nimbus.yaml`` file."""

    app: str = Field(min_length=1)
    allow_branch_previews: bool | None = Field(default=None, alias="allowBranchPreviews")
    services: list[ServiceDeclaration] = Field(default_factory=list)

    @property
    def previews_allowed(self) -> bool:
        """Branch previews are allowed unless explicitly disabled."""
        return self.allow_branch_previews is not False

    def service_names(self) -> set[str]:
        return {service.name for service in self.services}

    def duplicate_service_names(self) -> list[str]:
        counts = Counter(service.name for service in self.services)
        return sorted(name for name, count in counts.items() if count > 1)


def parse_manifest(content: bytes | str) -> Manifest:
    """Parse and validate manifest file content.

    Args:
        content: Raw YAML content

    Returns:
        The validated Manifest

    Raises:
        BadRequestError: If the YAML is invalid, the app name is missing,
                         or a field fails validation
    """
    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise BadRequestError("failed to parse file - invalid yaml") from e

    if not isinstance(loaded, dict):
        raise BadRequestError("failed to parse file - expected a mapping")
    if not loaded.get("app"):
        raise BadRequestError("app name is missing in file")

    try:
        return Manifest.model_validate(loaded)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise BadRequestError(f"invalid manifest - {details}") from e
