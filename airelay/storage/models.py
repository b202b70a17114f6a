"""SQLAlchemy ORM models for AI endpoints and their advertised models."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    pass


class EndpointRecord(Base):
    __tablename__ = "ai_endpoints"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(256))
    type: Mapped[str] = mapped_column(String(64), index=True)
    base_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    api_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    models: Mapped[list["EndpointModelRecord"]] = relationship(
        "EndpointModelRecord",
        back_populates="endpoint",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class EndpointModelRecord(Base):
    __tablename__ = "ai_endpoint_models"
    __table_args__ = (
        UniqueConstraint("endpoint_id", "model_id", name="uq_ai_endpoint_models_endpoint_model"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    endpoint_id: Mapped[str] = mapped_column(
        ForeignKey("ai_endpoints.id", ondelete="CASCADE"), index=True
    )
    model_id: Mapped[str] = mapped_column(String(256))
    model_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    endpoint: Mapped[EndpointRecord] = relationship("EndpointRecord", back_populates="models")
