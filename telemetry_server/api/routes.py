"""Telemetry collection and statistics routes."""

from __future__ import annotations

import logging
from typing import Annotated, Callable, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from telemetry_server.core.exceptions import StoreError
from telemetry_server.schemas import (
    ArchitectureStat,
    DeploymentRecord,
    MetricsResponse,
    TelemetryEvent,
    TelemetryEventResponse,
    TimeSeriesPoint,
    VersionStat,
)
from telemetry_server.storage.records import RecordStore

logger = logging.getLogger("telemetry.api")

router = APIRouter()

RECENT_DEPLOYMENTS_LIMIT = 100
SERVICE_NAME = "mattermost-telemetry"

T = TypeVar("T")


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


StoreDep = Annotated[RecordStore, Depends(get_store)]


def read_or_default(operation: Callable[[], T], default: T, *, label: str) -> T:
    """Run a read query, substituting ``default`` when the store fails.

    Read endpoints degrade to empty/zero values instead of erroring; write
    failures are never routed through here.
    """
    try:
        return operation()
    except StoreError as exc:
        logger.warning(
            "Read failed, serving default",
            extra={"event": "store_read_failed", "query": label, "error": exc.message},
        )
        return default


def _architecture_stats(breakdown: dict[str, int]) -> list[ArchitectureStat]:
    return [ArchitectureStat(architecture=arch, count=count) for arch, count in breakdown.items()]


@router.post("/collect", response_model=TelemetryEventResponse)
def collect_telemetry(event: TelemetryEvent, store: StoreDep):
    try:
        record_id = store.insert(event)
    except StoreError as exc:
        logger.error(
            "Failed to collect telemetry",
            extra={"event": "collect_failed", "instance_id": event.instance_id, "error": exc.message},
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": f"Failed to collect telemetry: {exc.message}",
            },
        )

    logger.info(
        "Telemetry collected",
        extra={"event": "collect_ok", "record_id": record_id, "instance_id": event.instance_id},
    )
    return TelemetryEventResponse(status="success", message="Telemetry collected")


@router.get("/metrics")
def get_metrics(store: StoreDep) -> MetricsResponse:
    # Five independent queries; the snapshot is not transactionally consistent.
    total = read_or_default(store.count_all, 0, label="count_all")
    unique = read_or_default(store.count_distinct_instances, 0, label="count_distinct_instances")
    architectures = read_or_default(store.architecture_breakdown, {}, label="architecture_breakdown")
    versions = read_or_default(store.version_breakdown, {}, label="version_breakdown")
    average = read_or_default(store.average_startup_ms, 0.0, label="average_startup_ms")

    return MetricsResponse(
        total_deployments=total,
        unique_instances=unique,
        architecture_breakdown=_architecture_stats(architectures),
        version_breakdown=[
            VersionStat(version=version, count=count) for version, count in versions.items()
        ],
        avg_startup_time_ms=average,
    )


@router.get("/health")
def health_check() -> dict:
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/deployments")
def get_deployments(store: StoreDep) -> list[DeploymentRecord]:
    records = read_or_default(
        lambda: store.recent_records(RECENT_DEPLOYMENTS_LIMIT), [], label="recent_records"
    )
    return [DeploymentRecord.model_validate(record) for record in records]


@router.get("/stats/architecture")
def get_architecture_stats(store: StoreDep) -> list[ArchitectureStat]:
    breakdown = read_or_default(store.architecture_breakdown, {}, label="architecture_breakdown")
    return _architecture_stats(breakdown)


@router.get("/stats/timeseries")
def get_time_series(
    store: StoreDep,
    bucket_minutes: Annotated[int, Query(ge=1, le=1440)] = 1,
) -> list[TimeSeriesPoint]:
    """Return deployment counts for the last 24 hours, bucketed by time."""
    series = read_or_default(
        lambda: store.time_series_last_24h(bucket_minutes), [], label="time_series_last_24h"
    )
    return [TimeSeriesPoint(bucket=bucket, count=count) for bucket, count in series]


__all__ = ["get_store", "read_or_default", "router"]
