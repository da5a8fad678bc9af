"""SQLAlchemy ORM models."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    func,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class EnvironmentStateORM(Base):
    __tablename__ = "environment_states"

    name = Column(String(255), primary_key=True)
    id = Column(String(36), nullable=False)
    current_version = Column(String(255), nullable=False, default="")
    active_color = Column(String(20), nullable=False, default="unknown")
    last_deployment_time = Column(DateTime(timezone=True), nullable=True)
    last_deployment_id = Column(String(64), nullable=True)
    health_status = Column(String(20), nullable=False, default="unknown")
    performance_data = Column(JSON, nullable=True, default=dict)
    revision = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class DeploymentORM(Base):
    __tablename__ = "deployments"

    id = Column(String(64), primary_key=True)
    environment = Column(String(255), nullable=False, index=True)
    status = Column(String(50), nullable=False, index=True)
    requested_version = Column(String(255), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)
    document = Column(JSON, nullable=False)
    revision = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_deployments_environment_start", "environment", "start_time"),
    )


class BackupORM(Base):
    __tablename__ = "backups"

    id = Column(String(36), primary_key=True)
    environment = Column(String(255), nullable=False, index=True)
    state_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
