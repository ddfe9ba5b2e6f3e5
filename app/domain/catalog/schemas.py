"""Catalog domain schemas - Services and their priced variants"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


def _non_negative(v, label: str):
    if v is not None and v < 0:
        raise ValueError(f"{label} must be a non-negative number")
    return v


class ServiceCreate(BaseModel):
    workspaceId: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    active: bool = True


class ServiceUpdate(BaseModel):
    """Partial update; only fields present in the body are written"""

    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    active: Optional[bool] = None


class VariantCreate(BaseModel):
    serviceId: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None
    active: bool = True

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        return _non_negative(v, "Duration")

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        return _non_negative(v, "Price")


class VariantUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None
    active: Optional[bool] = None

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        return _non_negative(v, "Duration")

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        return _non_negative(v, "Price")


class VariantResponse(BaseModel):
    id: str
    service_id: str
    name: str
    description: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceWithVariantsResponse(ServiceResponse):
    variants: list[VariantResponse] = []
