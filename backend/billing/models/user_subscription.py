"""UserSubscription ORM: the plan a user is currently (or was) subscribed to.

Invariants:
    - At most one ACTIVE subscription per user (enforced by SubscriptionService
      inside a transaction)
    - end_date is NULL for open-ended (free) subscriptions
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from billing.db.base import Base


class UserSubscription(Base):
    """User subscription entity."""
    __tablename__ = "user_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("subscription_plans.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"),
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="inr",
    )
    is_auto_renew: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    plan: Mapped["SubscriptionPlan"] = relationship(  # noqa: F821
        "SubscriptionPlan", lazy="selectin",
    )
