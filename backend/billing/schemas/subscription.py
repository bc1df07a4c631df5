"""Subscription Schemas: Pydantic models with field-level validation for API boundaries.

Invariants:
    - PlanCreate.name: 1-100 chars, stripped, non-empty
    - Money fields are non-negative Decimals; percentages bounded 0-100
    - Response models built from ORM rows via from_attributes

Design Decisions:
    - PlanType enum for plan_type: Pydantic handles validation natively
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from billing.core.domain_types import PlanType


class PlanCreate(BaseModel):
    """Plan creation payload."""
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    plan_type: PlanType
    amount: Decimal = Field(ge=0, decimal_places=2)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    currency: str | None = Field(None, min_length=3, max_length=3)
    features: list[str] = Field(default_factory=list)
    limits: dict[str, int] = Field(default_factory=dict)
    trial_days: int = Field(0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty or whitespace")
        return v

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class PlanResponse(BaseModel):
    """Plan as exposed to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    plan_type: PlanType
    amount: Decimal
    tax_percentage: Decimal
    discount_percentage: Decimal
    currency: str
    features: list[str]
    limits: dict[str, int]
    trial_days: int
    is_active: bool


class SubscriptionResponse(BaseModel):
    """User subscription as exposed to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    plan_id: UUID
    status: str
    amount: Decimal
    currency: str
    start_date: datetime
    end_date: datetime | None = None


class PurchaseRequest(BaseModel):
    """Plan purchase payload."""
    plan_id: UUID


class PurchaseResponse(BaseModel):
    """Result of a purchase: the new subscription plus its invoice."""
    subscription: SubscriptionResponse
    invoice_number: str
    amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class DeactivatePlansRequest(BaseModel):
    """Bulk deactivation payload; all plans deactivate or none do."""
    plan_ids: list[UUID] = Field(min_length=1)
