"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, Enum as SqlEnum, Float, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoleEnum(str, Enum):
    OWNER = "owner"
    CUSTOMER = "customer"


class EquipmentCategory(str, Enum):
    WOOD_SAW = "wood_saw"
    GARBAGE_TRUCK = "garbage_truck"
    HEAVY_EQUIPMENT = "heavy_equipment"
    EXCAVATOR = "excavator"
    CRANE = "crane"
    BULLDOZER = "bulldozer"
    CEMENT_MIXER = "cement_mixer"
    POWER_GENERATOR = "power_generator"
    AIR_COMPRESSOR = "air_compressor"
    OTHER = "other"


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum))
    city: Mapped[str] = mapped_column(String(100))

    equipment: Mapped[List["Equipment"]] = relationship(back_populates="owner")
    requests: Mapped[List["RentalRequest"]] = relationship(back_populates="customer")


class Equipment(TimestampMixin, Base):
    __tablename__ = "equipment"
    __table_args__ = (Index("ix_equipment_city_category_status", "city", "category", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    category: Mapped[EquipmentCategory] = mapped_column(SqlEnum(EquipmentCategory))
    description: Mapped[str] = mapped_column(Text)
    price_per_day: Mapped[float] = mapped_column(Float)
    price_per_hour: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=None)
    city: Mapped[str] = mapped_column(String(100))
    images: Mapped[list[str]] = mapped_column(JSON, default=list)
    phone_number: Mapped[str] = mapped_column(String(20))
    status: Mapped[EquipmentStatus] = mapped_column(SqlEnum(EquipmentStatus), default=EquipmentStatus.AVAILABLE)
    # Set when the owner removes the listing; rows stay for request history.
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    owner: Mapped[User] = relationship(back_populates="equipment")
    requests: Mapped[List["RentalRequest"]] = relationship(back_populates="equipment")


class RentalRequest(TimestampMixin, Base):
    __tablename__ = "requests"
    __table_args__ = (
        Index("ix_requests_customer_status", "customer_id", "status"),
        Index("ix_requests_equipment_status", "equipment_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    equipment_id: Mapped[int] = mapped_column(ForeignKey("equipment.id"))
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    customer_phone: Mapped[str] = mapped_column(String(20))
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, default=None)
    status: Mapped[RequestStatus] = mapped_column(SqlEnum(RequestStatus), default=RequestStatus.PENDING)

    customer: Mapped[User] = relationship(back_populates="requests")
    equipment: Mapped[Equipment] = relationship(back_populates="requests")

    @property
    def location(self) -> dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}
