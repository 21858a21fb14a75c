from collections.abc import Generator

import pytest
from sqlalchemy.engine import Engine

from shopfloor.application.services import PlanExecutionService
from shopfloor.core.config import Settings
from shopfloor.core.locks import LockRegistry
from shopfloor.core.retry import RetryConfig
from shopfloor.infrastructure.database import (
    UnitOfWorkManager,
    build_engine,
    init_db,
    session_factory,
)
from shopfloor.tests.factories import REFERENCE, ShopFloorBuilder


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def uow_factory(engine: Engine) -> UnitOfWorkManager:
    return UnitOfWorkManager(session_factory(engine))


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry(default_timeout=1.0)


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=False
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(DATABASE_URL="sqlite://", LOCK_TIMEOUT_SECONDS=1.0)


@pytest.fixture
def service(
    uow_factory: UnitOfWorkManager,
    locks: LockRegistry,
    retry_config: RetryConfig,
    test_settings: Settings,
) -> PlanExecutionService:
    return PlanExecutionService(
        uow_factory,
        locks=locks,
        config=test_settings,
        retry_config=retry_config,
        clock=lambda: REFERENCE,
    )


@pytest.fixture
def floor(uow_factory: UnitOfWorkManager) -> ShopFloorBuilder:
    return ShopFloorBuilder(uow_factory)
