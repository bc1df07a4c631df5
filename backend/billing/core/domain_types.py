"""Domain Types: rich types that replace bare primitives across the billing code.

Invariants:
    - UserId, PlanId, SubscriptionId wrap UUIDs; never use bare UUID in domain logic
    - All valid states encoded as Enums; no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# --- Identity Types ----------------------------------------------

UserId = NewType("UserId", UUID)
PlanId = NewType("PlanId", UUID)
SubscriptionId = NewType("SubscriptionId", UUID)


# --- Enums -------------------------------------------------------

class PlanType(str, Enum):
    """Billing period of a subscription plan."""
    FREE = "free"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    """User subscription lifecycle; maps to DB `status` column."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    """Payment outcome recorded on a history row."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SubscriptionSource(str, Enum):
    """Who initiated a subscription change."""
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"
