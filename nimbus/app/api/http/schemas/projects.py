"""Project and secret bundle schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    name: str = Field(description="Project name, also the app name used in manifests")


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]


class SecretsUpdateRequest(BaseModel):
    secrets: dict[str, str] = Field(
        default_factory=dict,
        description="Complete replacement bundle; keys absent here are removed",
    )


class SecretsUpdateResponse(BaseModel):
    namespaces: list[str] = Field(description="Namespaces whose bundle was replaced")


class SecretNamesResponse(BaseModel):
    secrets: list[str]


class SecretValuesResponse(BaseModel):
    secrets: dict[str, str]


class ProjectCredentialResponse(BaseModel):
    api_key: str = Field(description="Deploy credential, accepted only by POST /deploy")
