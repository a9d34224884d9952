"""Service status schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServiceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project: str
    branch: str
    name: str
    status: str = Field(description="Phase of the first pod, or 'Unknown'")


class ServiceListResponse(BaseModel):
    services: list[ServiceSummaryResponse]


class PodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    status: str
    restarts: int
    creation_timestamp: str = ""
    node: str = ""


class ServiceDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project: str
    branch: str
    name: str
    node_ports: list[int]
    ingress: str | None
    pods: list[PodResponse]
    logs: str = Field(description="Log tail of the first pod")
