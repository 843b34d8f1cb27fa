"""
Pytest configuration and shared fixtures.

This file registers custom pytest markers and command-line options, and
provides engine/store fixtures driven by a controllable clock.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.models.approval import ActorRef, ApprovalDraft
from src.services.approval_rules import create_approval_rules
from src.services.engine import ApprovalEngine
from src.services.storage.approvals import InMemoryApprovalStore


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real Azure resources"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real Azure resources"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FakeClock:
    """Deterministic clock; only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    """Fresh in-memory store for each test"""
    return InMemoryApprovalStore()


@pytest.fixture
def engine(store, clock):
    """Engine with TRY base currency and no high-value escalation"""
    return ApprovalEngine(
        store,
        base_currency="TRY",
        rules=create_approval_rules(high_value_threshold=0),
        clock=clock,
    )


@pytest.fixture
def requester():
    return ActorRef(id="u-100", name="Ayse Demir")


@pytest.fixture
def admin_a():
    return ActorRef(id="admin-a", name="Admin A")


@pytest.fixture
def admin_b():
    return ActorRef(id="admin-b", name="Admin B")


@pytest.fixture
def make_draft():
    """Build an ApprovalDraft with sensible defaults"""
    def _make(**overrides) -> ApprovalDraft:
        data = {
            "scope": "facility-1",
            "module": "finance",
            "type": "transaction",
            "title": "Office supplies",
            "description": "Monthly stationery order",
        }
        data.update(overrides)
        return ApprovalDraft(**data)

    return _make
