"""
SQLAlchemy models for field_service_providers, field_service_orders and
field_service_events.

JSON columns are ``JSONB`` on PostgreSQL and plain ``JSON`` elsewhere so the
same models back the in-memory SQLite test database.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


class FieldServiceProviderStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class FieldServiceProvider(TimestampMixin, Base):
    __tablename__ = "field_service_providers"
    __table_args__ = (
        Index("idx_field_service_providers_status", "status"),
        Index("idx_field_service_providers_user", "user_id"),
        Index("idx_field_service_providers_location_updated", "location_updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=FieldServiceProviderStatus.ACTIVE.value,
        server_default=FieldServiceProviderStatus.ACTIVE.value,
    )
    specialties: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    last_check_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Last known position
    location_lat: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    location_lng: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    location_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    location_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    metadata_json: Mapped[Optional[Any]] = mapped_column(
        "metadata", JSONType, nullable=True, default=dict
    )

    orders: Mapped[list["FieldServiceOrder"]] = relationship(
        "FieldServiceOrder", back_populates="provider"
    )

    def __repr__(self) -> str:
        return f"<FieldServiceProvider id={self.id} name={self.name!r}>"


class FieldServiceOrder(TimestampMixin, Base):
    __tablename__ = "field_service_orders"
    __table_args__ = (
        Index("idx_field_service_orders_status", "status"),
        Index("idx_field_service_orders_customer", "customer_user_id"),
        Index("idx_field_service_orders_provider", "provider_id"),
        Index("idx_field_service_orders_scheduled", "scheduled_for"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    customer_user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    provider_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("field_service_providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(24), nullable=False, default="standard", server_default="standard"
    )
    service_type: Mapped[str] = mapped_column(String(160), nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Scheduling & SLA
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    eta_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sla_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    distance_km: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)

    # Job site
    location_lat: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    location_lng: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    location_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_line_1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_line_2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)
    country: Mapped[str] = mapped_column(
        String(2), nullable=False, default="GB", server_default="GB"
    )

    metadata_json: Mapped[Optional[Any]] = mapped_column(
        "metadata", JSONType, nullable=True, default=dict
    )

    provider: Mapped[Optional["FieldServiceProvider"]] = relationship(
        "FieldServiceProvider", back_populates="orders"
    )
    events: Mapped[list["FieldServiceEvent"]] = relationship(
        "FieldServiceEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="FieldServiceEvent.occurred_at",
    )

    def __repr__(self) -> str:
        return f"<FieldServiceOrder id={self.id} reference={self.reference!r} status={self.status}>"


class FieldServiceEvent(Base):
    __tablename__ = "field_service_events"
    __table_args__ = (
        Index("idx_field_service_events_order", "order_id"),
        Index("idx_field_service_events_occurred_at", "occurred_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("field_service_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    metadata_json: Mapped[Optional[Any]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    order: Mapped["FieldServiceOrder"] = relationship(
        "FieldServiceOrder", back_populates="events"
    )

    def __repr__(self) -> str:
        return f"<FieldServiceEvent id={self.id} order_id={self.order_id} type={self.event_type}>"
