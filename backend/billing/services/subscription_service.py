"""Subscription Service: plan catalog and user subscription changes as atomic operations.

Invariants:
    - Every mutating method runs in exactly one transaction (transactional) and
      surfaces only classified errors (classify_errors)
    - Methods take a trailing options mapping, positionally or as `options=`;
      options["session"] is the AsyncSession.
      Optional parameters come after it as keyword-only, so an appended options
      mapping always binds to `options`
    - purchase_plan is all-or-nothing: previous subscription cancelled, new
      subscription created, and history row written together or not at all
    - deactivate_plans is all-or-nothing across the whole list (execute_batch)
    - Flush failures leave as ConflictError / DatabaseError, never as raw SQLAlchemy text

Design Decisions:
    - Calling one transactional method from another passes options through, so the
      nested call joins the outer transaction instead of opening its own
"""

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.domain_types import (
    PaymentStatus, PlanType, SubscriptionSource, SubscriptionStatus,
)
from billing.core.errors import (
    ConflictError, ErrorContext, PaymentRequiredError, ResourceNotFoundError,
    ValidationError,
)
from billing.core.invoicing import (
    compute_tax, compute_total, generate_invoice_number, plan_duration_days,
)
from billing.core.session_options import session_from
from billing.core.transaction_protocols import TransactionRunner
from billing.infrastructure.database import map_sqlalchemy_error
from billing.infrastructure.transactional import classify_errors, transactional
from billing.models.subscription_history import SubscriptionHistory
from billing.models.subscription_plan import SubscriptionPlan
from billing.models.user_subscription import UserSubscription
from billing.schemas.subscription import PlanCreate

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    """New subscription plus the ledger row that invoices it."""
    subscription: UserSubscription
    history: SubscriptionHistory


def _db(options: Mapping | None) -> AsyncSession:
    session = session_from(options)
    if session is None:
        raise RuntimeError("operation requires an injected session")
    return session


async def _flush(db: AsyncSession) -> None:
    # Unique-key races surface at flush time.
    try:
        await db.flush()
    except SQLAlchemyError as e:
        raise map_sqlalchemy_error(e) from e


class SubscriptionService:
    """Business operations over plans and user subscriptions."""

    def __init__(
        self,
        transaction_manager: TransactionRunner,
        invoice_prefix: str = "INV-{YYYY}{MM}",
        default_currency: str = "inr",
    ):
        self.transaction_manager = transaction_manager
        self.invoice_prefix = invoice_prefix
        self.default_currency = default_currency

    # --- Plans -------------------------------------------------------

    @transactional()
    @classify_errors("Failed to create subscription plan")
    async def create_plan(
        self, data: PlanCreate, options: Mapping | None = None,
    ) -> SubscriptionPlan:
        db = _db(options)
        # Validates amount and percentages before anything is written.
        compute_total(data.amount, data.tax_percentage, data.discount_percentage)

        existing = await db.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.name == data.name),
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                f"Subscription plan '{data.name}' already exists",
                ErrorContext(operation="create_plan"),
            )

        plan = SubscriptionPlan(
            id=uuid.uuid4(),
            name=data.name,
            description=data.description,
            plan_type=data.plan_type.value,
            amount=data.amount,
            tax_percentage=data.tax_percentage,
            discount_percentage=data.discount_percentage,
            currency=data.currency or self.default_currency,
            features=list(data.features),
            limits=dict(data.limits),
            trial_days=data.trial_days,
            is_active=True,
            is_deleted=False,
        )
        db.add(plan)
        await _flush(db)
        logger.info(
            f"Subscription plan created: {plan.name}", extra={"plan_id": plan.id},
        )
        return plan

    @transactional()
    @classify_errors("Failed to list subscription plans")
    async def list_plans(
        self, options: Mapping | None = None, *, include_inactive: bool = False,
    ) -> list[SubscriptionPlan]:
        db = _db(options)
        query = select(SubscriptionPlan).where(
            SubscriptionPlan.is_deleted.is_(False),
        )
        if not include_inactive:
            query = query.where(SubscriptionPlan.is_active.is_(True))
        result = await db.execute(query.order_by(SubscriptionPlan.amount))
        return list(result.scalars().all())

    @classify_errors("Failed to deactivate subscription plans")
    async def deactivate_plans(
        self, plan_ids: Sequence[uuid.UUID],
    ) -> list[SubscriptionPlan]:
        """Deactivate every plan in plan_ids, or none if any is missing."""
        return await self.transaction_manager.execute_batch(
            [self._deactivation(plan_id) for plan_id in plan_ids],
        )

    def _deactivation(self, plan_id: uuid.UUID):
        async def deactivate(db: AsyncSession) -> SubscriptionPlan:
            plan = await self._get_plan(db, plan_id, active_only=False)
            plan.is_active = False
            await _flush(db)
            return plan
        return deactivate

    # --- Subscriptions -----------------------------------------------

    @transactional()
    @classify_errors("Failed to fetch active subscription")
    async def get_active_subscription(
        self, user_id: uuid.UUID, options: Mapping | None = None,
    ) -> UserSubscription | None:
        return await self._active_subscription(_db(options), user_id)

    @transactional()
    @classify_errors("Failed to assign free plan to user")
    async def assign_free_plan(
        self, user_id: uuid.UUID, options: Mapping | None = None,
    ) -> UserSubscription:
        """Give user the free plan; idempotent when they already subscribe."""
        db = _db(options)
        existing = await self._active_subscription(db, user_id)
        if existing is not None:
            logger.warning(
                f"User {user_id} already has a subscription",
                extra={"user_id": user_id},
            )
            return existing

        result = await db.execute(
            select(SubscriptionPlan).where(
                SubscriptionPlan.plan_type == PlanType.FREE.value,
                SubscriptionPlan.is_active.is_(True),
                SubscriptionPlan.is_deleted.is_(False),
            ).limit(1),
        )
        free_plan = result.scalar_one_or_none()
        if free_plan is None:
            raise ResourceNotFoundError(
                "SubscriptionPlan", PlanType.FREE.value,
                ErrorContext(operation="assign_free_plan"),
            )

        subscription = UserSubscription(
            id=uuid.uuid4(),
            user_id=user_id,
            plan_id=free_plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            amount=Decimal("0"),
            currency=free_plan.currency,
            is_auto_renew=False,
            start_date=datetime.now(timezone.utc),
        )
        db.add(subscription)
        await _flush(db)
        logger.info(
            f"Free plan assigned to user {user_id}", extra={"user_id": user_id},
        )
        return subscription

    @transactional()
    @classify_errors("Failed to purchase subscription plan")
    async def purchase_plan(
        self,
        user_id: uuid.UUID,
        plan_id: uuid.UUID,
        options: Mapping | None = None,
        *,
        source: SubscriptionSource = SubscriptionSource.USER,
        payment_status: PaymentStatus = PaymentStatus.SUCCEEDED,
    ) -> PurchaseResult:
        """Switch user to plan_id and record the invoice, atomically."""
        db = _db(options)
        plan = await self._get_plan(db, plan_id)
        if plan.plan_type == PlanType.FREE.value:
            raise ValidationError(
                "Free plans are assigned, not purchased", "plan_id",
            )

        now = datetime.now(timezone.utc)
        previous = await self._active_subscription(db, user_id)
        if previous is not None:
            previous.status = SubscriptionStatus.CANCELLED.value
            previous.cancelled_at = now

        discounted = compute_total(plan.amount, 0, plan.discount_percentage)
        tax_amount = compute_tax(discounted, plan.tax_percentage)
        total = discounted + tax_amount

        subscription = UserSubscription(
            id=uuid.uuid4(),
            user_id=user_id,
            plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            amount=total,
            currency=plan.currency,
            is_auto_renew=True,
            start_date=now,
            end_date=now + timedelta(days=plan_duration_days(plan.plan_type)),
        )
        db.add(subscription)
        await _flush(db)

        history = SubscriptionHistory(
            id=uuid.uuid4(),
            user_id=user_id,
            subscription_id=subscription.id,
            previous_subscription_id=previous.id if previous else None,
            plan_id=plan.id,
            plan_type=plan.plan_type,
            amount=discounted,
            tax_percentage=plan.tax_percentage,
            tax_amount=tax_amount,
            total_amount=total,
            currency=plan.currency,
            invoice_number=await self._next_invoice_number(db, now),
            payment_status=payment_status.value,
            source=source.value,
            purchase_date=now,
        )
        db.add(history)
        await _flush(db)
        logger.info(
            f"User {user_id} purchased plan {plan.name} "
            f"(invoice {history.invoice_number})",
            extra={"user_id": user_id, "plan_id": plan.id},
        )
        return PurchaseResult(subscription=subscription, history=history)

    @transactional()
    @classify_errors("Failed to cancel subscription")
    async def cancel_subscription(
        self, user_id: uuid.UUID, options: Mapping | None = None,
    ) -> UserSubscription:
        db = _db(options)
        subscription = await self._active_subscription(db, user_id)
        if subscription is None:
            raise ResourceNotFoundError(
                "UserSubscription", str(user_id),
                ErrorContext(operation="cancel_subscription"),
            )
        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.is_auto_renew = False
        subscription.cancelled_at = datetime.now(timezone.utc)
        await _flush(db)
        return subscription

    @transactional()
    @classify_errors("Failed to check premium subscription")
    async def require_premium_subscription(
        self, user_id: uuid.UUID, options: Mapping | None = None,
    ) -> UserSubscription:
        """Active paid subscription of user, or PaymentRequiredError."""
        subscription = await self.get_active_subscription(user_id, options)
        if subscription is None or subscription.amount <= 0:
            raise PaymentRequiredError(
                "An active paid subscription is required",
                ErrorContext(operation="require_premium_subscription"),
            )
        return subscription

    # --- Helpers -----------------------------------------------------

    async def _get_plan(
        self, db: AsyncSession, plan_id: uuid.UUID, active_only: bool = True,
    ) -> SubscriptionPlan:
        query = select(SubscriptionPlan).where(
            SubscriptionPlan.id == plan_id,
            SubscriptionPlan.is_deleted.is_(False),
        )
        if active_only:
            query = query.where(SubscriptionPlan.is_active.is_(True))
        plan = (await db.execute(query)).scalar_one_or_none()
        if plan is None:
            raise ResourceNotFoundError("SubscriptionPlan", str(plan_id))
        return plan

    async def _active_subscription(
        self, db: AsyncSession, user_id: uuid.UUID,
    ) -> UserSubscription | None:
        now = datetime.now(timezone.utc)
        result = await db.execute(
            select(UserSubscription).where(
                UserSubscription.user_id == user_id,
                UserSubscription.status == SubscriptionStatus.ACTIVE.value,
                (UserSubscription.end_date.is_(None))
                | (UserSubscription.end_date > now),
            ).order_by(UserSubscription.start_date.desc()).limit(1),
        )
        return result.scalar_one_or_none()

    async def _next_invoice_number(self, db: AsyncSession, now: datetime) -> str:
        count = await db.scalar(select(func.count(SubscriptionHistory.id)))
        return generate_invoice_number(
            self.invoice_prefix, (count or 0) + 1, now.date(),
        )
