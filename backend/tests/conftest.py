"""Root conftest: shared test configuration and a real SQLite backend.

Invariants:
    - Tests never reach a real PostgreSQL instance
    - sqlite_manager gives every test a fresh file-backed database under tmp_path
"""

import os

# Before any billing import reads settings
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")

import pytest  # noqa: E402

from billing.db.base import Base  # noqa: E402
from billing.infrastructure.database import DatabaseSessionManager  # noqa: E402
import billing.models  # noqa: E402, F401


@pytest.fixture
async def sqlite_manager(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()
