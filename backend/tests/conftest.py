"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers
WHY: Enable test organization, filtering, and shared test utilities
HOW: Point settings at a throwaway database, define markers and fixtures
"""

import os

# Must run before anything imports bargain_market.core.config
os.environ["DATABASE_URL"] = "sqlite:///./test_data/test_marketplace.db"
os.environ["LOG_FILE"] = "./test_data/logs/app.log"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["BARGAIN_LOCK_TIMEOUT_SECONDS"] = "2.0"

import pytest

from bargain_market.core.database import Base, engine, init_db
from bargain_market.models.bargain import Actor, ActorRole
from bargain_market.services.catalog import reset_catalog, set_catalog
from bargain_market.services.negotiation_engine import NegotiationEngine, reset_engine
from bargain_market.services.notifications import reset_dispatcher
from bargain_market.utils.locks import KeyedLockRegistry

from tests.fixtures.catalog import FakeCatalog, RecordingDispatcher


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )
    config.addinivalue_line(
        "markers", "concurrency: Tests that race several threads against each other"
    )


@pytest.fixture(autouse=True)
def clean_database():
    """
    Fresh tables for every test.

    WHAT: Drop and recreate the schema
    WHY: Ensure test isolation
    HOW: Base.metadata.drop_all before init_db
    """
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset collaborator singletons before and after each test.

    WHAT: Clear engine, catalog and dispatcher caches
    WHY: Prevent test pollution through process-wide instances
    """
    reset_engine()
    reset_catalog()
    reset_dispatcher()
    yield
    reset_engine()
    reset_catalog()
    reset_dispatcher()


@pytest.fixture
def catalog():
    """In-memory catalog with two products owned by seller_1."""
    fake = FakeCatalog()
    fake.add("laptop", price=100.0, stock=5, owner_id="seller_1")
    fake.add("phone", price=50.0, stock=10, owner_id="seller_1")
    return fake


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def negotiation(catalog, dispatcher):
    """Engine wired to the fake catalog, a recording dispatcher and private locks."""
    set_catalog(catalog)
    return NegotiationEngine(
        catalog=catalog,
        dispatcher=dispatcher,
        locks=KeyedLockRegistry(timeout=2.0)
    )


@pytest.fixture
def buyer():
    return Actor(user_id="buyer_1", role=ActorRole.BUYER)


@pytest.fixture
def other_buyer():
    return Actor(user_id="buyer_2", role=ActorRole.BUYER)


@pytest.fixture
def seller():
    return Actor(user_id="seller_1", role=ActorRole.SELLER)


@pytest.fixture
def other_seller():
    return Actor(user_id="seller_2", role=ActorRole.SELLER)


@pytest.fixture
def admin():
    return Actor(user_id="admin_1", role=ActorRole.ADMIN)
