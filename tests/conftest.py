from typing import List

import pytest
import pytest_asyncio

from graphdata.db import ConnectionManager, Neo4jConnectionConfig, RetryPolicy, TransactionManager

from tests.fakes import FakeDriver, ScriptedResponder

# ============================================================================
# Connection Fixtures
# ============================================================================


@pytest.fixture
def connection_config() -> Neo4jConnectionConfig:
    """Connection config with a small pool and short acquisition wait."""
    return Neo4jConnectionConfig(
        uri="bolt://localhost:7687",
        user="neo4j",
        password="SecurePassword123!@#",
        max_pool_size=2,
        acquisition_timeout=0.2,
    )


@pytest.fixture
def responder() -> ScriptedResponder:
    return ScriptedResponder()


@pytest.fixture
def fake_driver(responder) -> FakeDriver:
    return FakeDriver(responder)


@pytest_asyncio.fixture
async def manager(connection_config, fake_driver):
    manager = await ConnectionManager.open(
        connection_config, driver_factory=lambda config: fake_driver
    )
    yield manager
    await manager.close(timeout=1.0)


@pytest.fixture
def sleeps() -> List[float]:
    """Backoff delays requested by the TransactionManager under test."""
    return []


@pytest_asyncio.fixture
async def tx_manager(manager, sleeps) -> TransactionManager:
    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    return TransactionManager(
        manager,
        RetryPolicy(max_attempts=3, backoff_base=0.1, backoff_ceiling=1.0, jitter=0.0),
        sleep=record_sleep,
    )
