"""Pydantic schemas shared across the microservices."""
from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import EquipmentCategory, EquipmentStatus, RequestStatus, RoleEnum

LIBYAN_PHONE_PATTERN = r"^(091|092|093|094|095)\d{7}$"

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None
    data: Optional[T] = None


class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., pattern=LIBYAN_PHONE_PATTERN)
    role: RoleEnum
    city: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", "city", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


class UserRead(UserBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    id: int
    name: str
    phone: str
    city: str

    model_config = ConfigDict(from_attributes=True)


class UserContact(UserSummary):
    email: str


class AuthData(BaseModel):
    user: UserRead
    token: str


class LoginRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class EquipmentBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    category: EquipmentCategory
    description: str = Field(..., min_length=1, max_length=1000)
    price_per_day: float = Field(..., ge=0)
    price_per_hour: Optional[float] = Field(None, ge=0)
    city: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., pattern=LIBYAN_PHONE_PATTERN)


class EquipmentCreate(EquipmentBase):
    status: EquipmentStatus = EquipmentStatus.AVAILABLE


class EquipmentUpdate(BaseModel):
    """Owner-editable listing fields. ``status`` only accepts a return to ``available``."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[EquipmentCategory] = None
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    price_per_day: Optional[float] = Field(None, ge=0)
    price_per_hour: Optional[float] = Field(None, ge=0)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, pattern=LIBYAN_PHONE_PATTERN)
    status: Optional[EquipmentStatus] = None


class EquipmentRead(EquipmentBase):
    id: int
    owner_id: int
    images: List[str]
    status: EquipmentStatus
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class EquipmentDetail(EquipmentRead):
    owner: Optional[UserContact] = None


class EquipmentSummary(BaseModel):
    id: int
    owner_id: int
    title: str
    category: EquipmentCategory
    city: str
    images: List[str]
    price_per_day: float
    status: EquipmentStatus

    model_config = ConfigDict(from_attributes=True)


class Location(BaseModel):
    lat: float
    lng: float


class RequestCreate(BaseModel):
    equipment_id: int
    location: Location
    customer_phone: str = Field(..., min_length=1, max_length=20)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("notes", "customer_phone", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class StatusUpdate(BaseModel):
    status: RequestStatus


class RequestRead(BaseModel):
    id: int
    customer_id: int
    equipment_id: int
    location: Location
    customer_phone: str
    notes: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    customer: Optional[UserSummary] = None
    equipment: Optional[EquipmentSummary] = None

    model_config = ConfigDict(from_attributes=True)
