"""Responses for application-level endpoints."""

from pydantic import ConfigDict, Field

from .base import StandardizedModel


class HealthResponse(StandardizedModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    status: str = Field(description="Health status")
    service: str = Field(description="Service name")
    environment: str = Field(description="Environment name")
    database: str = Field(description="Database reachability")
    timestamp: str = Field(description="UTC ISO8601Z timestamp of the health response")
