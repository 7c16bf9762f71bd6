"""ORM model for persisted deployment records."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, Text, func

from .database import Base


class Deployment(Base):
    __tablename__ = "deployments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instance_id = Column(Text, nullable=False)
    image_version = Column(Text, nullable=False)
    architecture = Column(Text, nullable=False)
    container_runtime = Column(Text, nullable=False)
    startup_time_ms = Column(Integer, nullable=False)
    db_type = Column(Text, nullable=False)
    telemetry_version = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_instance_id", "instance_id"),
        Index("idx_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )
