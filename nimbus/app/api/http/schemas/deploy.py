"""Deploy endpoint schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DeployResponse(BaseModel):
    services: dict[str, list[str]] = Field(
        description="Public URLs of every declared service, keyed by service name",
        examples=[{"web": ["https://3f2a9c0d1b7e6a54.apps.example.com"], "db": []}],
    )
