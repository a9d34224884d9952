"""Error response body shared by every endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    code: str = Field(description="Stable machine readable error code")
    status: int = Field(description="HTTP status of the response")
    message: str = Field(description="Human readable description")
    error_id: str = Field(description="Identifier of the failed request")
