"""Request and response models for the telemetry HTTP API."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Largest value a signed 64-bit SQL INTEGER column can hold.
SQL_INTEGER_MAX = 2**63 - 1


class TelemetryEvent(BaseModel):
    instance_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    image_version: str
    architecture: str
    # Accepted from clients but not persisted.
    os: str
    container_runtime: str
    startup_time_ms: int = Field(ge=0, le=SQL_INTEGER_MAX)
    db_type: str
    telemetry_version: str = "1.0"
    timestamp: datetime | None = None


class TelemetryEventResponse(BaseModel):
    status: str
    message: str


class DeploymentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    instance_id: str
    image_version: str
    architecture: str
    container_runtime: str
    startup_time_ms: int
    db_type: str
    telemetry_version: str
    created_at: datetime | None = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        # SQLite returns CURRENT_TIMESTAMP values without an offset; they are UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ArchitectureStat(BaseModel):
    architecture: str
    count: int


class VersionStat(BaseModel):
    version: str
    count: int


class TimeSeriesPoint(BaseModel):
    bucket: str
    count: int


class MetricsResponse(BaseModel):
    total_deployments: int
    unique_instances: int
    architecture_breakdown: list[ArchitectureStat]
    version_breakdown: list[VersionStat]
    avg_startup_time_ms: float
