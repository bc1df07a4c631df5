"""ORM Models: SQLAlchemy declarative models for all billing entities.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from billing.models.subscription_plan import SubscriptionPlan  # noqa: F401
from billing.models.user_subscription import UserSubscription  # noqa: F401
from billing.models.subscription_history import SubscriptionHistory  # noqa: F401
