"""Service test fixtures: SubscriptionService over SQLite + FastAPI test client.

Invariants:
    - service uses a real TransactionManager over the per-test SQLite database
    - client overrides get_transaction_manager and patches db_manager for readiness
    - free_plan / gold_plan seed the catalog through the service itself
"""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

import billing.infrastructure.database as db_module
from billing.core.domain_types import PlanType
from billing.infrastructure.database import get_transaction_manager
from billing.infrastructure.transaction_manager import TransactionManager
from billing.main import app
from billing.schemas.subscription import PlanCreate
from billing.services.subscription_service import SubscriptionService


@pytest.fixture
def transaction_manager(sqlite_manager):
    return TransactionManager(sqlite_manager)


@pytest.fixture
def service(transaction_manager):
    return SubscriptionService(
        transaction_manager, invoice_prefix="INV-{YYYY}-{SEQ}",
    )


@pytest.fixture
async def free_plan(service):
    return await service.create_plan(PlanCreate(
        name="Free", plan_type=PlanType.FREE, amount=Decimal("0"),
    ))


@pytest.fixture
async def gold_plan(service):
    return await service.create_plan(PlanCreate(
        name="Gold", plan_type=PlanType.MONTHLY, amount=Decimal("1000.00"),
        tax_percentage=Decimal("18"), discount_percentage=Decimal("10"),
        features=["visitor_invite"], limits={"employees": 50},
    ))


@pytest.fixture
async def client(sqlite_manager, transaction_manager):
    """FastAPI test client with the transaction manager overridden."""
    app.dependency_overrides[get_transaction_manager] = lambda: transaction_manager

    original_manager = db_module.db_manager
    db_module.db_manager = sqlite_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
