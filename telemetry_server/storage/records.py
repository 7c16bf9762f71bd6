"""Record store for deployment telemetry: persistence and aggregate queries."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, List, Tuple, cast

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute

from telemetry_server.core.exceptions import StoreError

from .database import Base, build_engine, build_session_factory, session_scope
from .models import Deployment

if TYPE_CHECKING:
    from telemetry_server.schemas import TelemetryEvent

logger = logging.getLogger("telemetry.store")

TIME_BUCKET_FORMAT = "%Y-%m-%d %H:%M"
_SERIES_WINDOW = timedelta(hours=24)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive values for CURRENT_TIMESTAMP, which is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _floor_to_bucket(value: datetime, bucket_minutes: int) -> datetime:
    epoch_minutes = int(value.timestamp()) // 60
    floored = epoch_minutes - epoch_minutes % bucket_minutes
    return datetime.fromtimestamp(floored * 60, tz=timezone.utc)


class RecordStore:
    """Pooled access to the ``deployments`` table.

    The engine's connection pool is safe to share across threads, so one
    instance is created at startup and handed to every request handler.
    All driver failures surface as :class:`StoreError`.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        try:
            self._engine = build_engine(database_url)
        except (SQLAlchemyError, ValueError) as exc:
            raise StoreError(f"Failed to connect to database: {exc}") from exc
        self._sessions = build_session_factory(self._engine)

    def init_schema(self) -> None:
        """Create the deployments table and its indexes if they do not already exist."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create deployments schema: {exc}") from exc
        logger.info("Deployment schema ready", extra={"database_url": self._engine.url.render_as_string()})

    def dispose(self) -> None:
        self._engine.dispose()

    def insert(self, event: "TelemetryEvent") -> int:
        """Persist an event and return the id assigned to the new record."""
        record = Deployment(
            instance_id=event.instance_id,
            image_version=event.image_version,
            architecture=event.architecture,
            container_runtime=event.container_runtime,
            startup_time_ms=event.startup_time_ms,
            db_type=event.db_type,
            telemetry_version=event.telemetry_version,
        )
        try:
            with session_scope(self._sessions) as session:
                session.add(record)
                session.flush()
                record_id = cast(int, record.id)
        except (SQLAlchemyError, OverflowError) as exc:
            raise StoreError(f"Failed to insert deployment: {exc}") from exc
        return record_id

    def count_all(self) -> int:
        try:
            with session_scope(self._sessions) as session:
                total = session.scalar(select(func.count()).select_from(Deployment))
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count deployments: {exc}") from exc
        return int(total or 0)

    def count_distinct_instances(self) -> int:
        try:
            with session_scope(self._sessions) as session:
                total = session.scalar(select(func.count(distinct(Deployment.instance_id))))
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count unique instances: {exc}") from exc
        return int(total or 0)

    def _grouped_counts(self, column: InstrumentedAttribute[str], context: str) -> Dict[str, int]:
        stmt = select(column, func.count()).group_by(column)
        try:
            with session_scope(self._sessions) as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"{context}: {exc}") from exc
        return {key: int(count) for key, count in rows}

    def architecture_breakdown(self) -> Dict[str, int]:
        """Return row counts grouped by architecture."""
        return self._grouped_counts(Deployment.architecture, "Failed to get architecture stats")

    def version_breakdown(self) -> Dict[str, int]:
        """Return row counts grouped by image version."""
        return self._grouped_counts(Deployment.image_version, "Failed to get version stats")

    def average_startup_ms(self) -> float:
        """Return the mean startup time, or 0.0 when no records exist."""
        try:
            with session_scope(self._sessions) as session:
                average = session.scalar(select(func.avg(Deployment.startup_time_ms)))
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to get avg startup time: {exc}") from exc
        if average is None:
            return 0.0
        return float(average)

    def recent_records(self, limit: int) -> List[Deployment]:
        """Return up to ``limit`` records, newest first."""
        stmt = (
            select(Deployment)
            .order_by(Deployment.created_at.desc(), Deployment.id.desc())
            .limit(max(limit, 0))
        )
        try:
            with session_scope(self._sessions) as session:
                rows = session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to get recent deployments: {exc}") from exc
        return list(rows)

    def time_series_last_24h(self, bucket_minutes: int = 1) -> List[Tuple[str, int]]:
        """Count records from the last 24 hours in ``bucket_minutes``-wide windows.

        Buckets are aligned to the epoch, labelled with their start in local
        server time and returned oldest first. Empty windows are omitted.
        """
        if bucket_minutes < 1:
            raise ValueError("bucket_minutes must be at least 1")

        cutoff = datetime.now(timezone.utc) - _SERIES_WINDOW
        stmt = select(Deployment.created_at).where(Deployment.created_at >= cutoff)
        try:
            with session_scope(self._sessions) as session:
                timestamps = session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to get time series data: {exc}") from exc

        counts: Counter[datetime] = Counter(
            _floor_to_bucket(_as_utc(ts), bucket_minutes) for ts in timestamps if ts is not None
        )
        return [
            (bucket.astimezone().strftime(TIME_BUCKET_FORMAT), counts[bucket])
            for bucket in sorted(counts)
        ]


__all__ = ["RecordStore", "TIME_BUCKET_FORMAT"]
