"""Billing domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CheckoutRequest(BaseModel):
    """Schema for creating a checkout session or changing plan"""

    planId: Optional[str] = None
    workspaceId: Optional[str] = None
    billingInterval: str = "monthly"

    @field_validator("billingInterval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        if v not in ("monthly", "yearly"):
            raise ValueError("billingInterval must be 'monthly' or 'yearly'")
        return v


class AddSeatsRequest(BaseModel):
    workspaceId: Optional[str] = None
    seatsToAdd: int

    @field_validator("seatsToAdd")
    @classmethod
    def validate_seats(cls, v: int) -> int:
        if v < 1:
            raise ValueError("seatsToAdd must be at least 1")
        return v


class WorkspaceBillingRequest(BaseModel):
    """Body for endpoints that only need the workspace"""

    workspaceId: Optional[str] = None


class PlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    stripe_product_id: Optional[str] = None
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    included_seats: int
    max_messages: int
    max_emails: int
    max_call_minutes: int
    is_public: bool
    trial_period_days: Optional[int] = None

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: str
    workspace_id: str
    subscription_plan_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    status: str
    trial_ends_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    additional_seats: int = 0
    billing_interval: Optional[str] = None
    usage_billing_start: Optional[datetime] = None
    usage_billing_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subscription_plans: Optional[PlanResponse] = Field(default=None, validation_alias="plan")
    trial_period_days: Optional[int] = None

    class Config:
        from_attributes = True
