"""
Tests for headline stats.

Stats always describe the whole scope, whatever the list view is filtering.
"""

import asyncio

import pytest

from src.core.errors import StoreUnavailable
from src.models.approval import ApprovalFilter, ApprovalStats
from src.services.stats import StatsAggregator
from src.services.storage.approvals import InMemoryApprovalStore


def run(coro):
    return asyncio.run(coro)


class BrokenStore(InMemoryApprovalStore):
    async def query_all(self, scope):
        raise StoreUnavailable("query_all", detail="disk I/O error")


@pytest.fixture
def populated(engine, make_draft, requester, admin_a, clock):
    """facility-1: 2 pending (1 urgent), 1 approved, 1 rejected, 1 cancelled; facility-2: 1 urgent pending"""
    def submit(**kw):
        clock.advance(1)
        return run(engine.submit(make_draft(**kw), requester))

    submit(priority="urgent")
    submit(module="hr", type="leave")
    run(engine.approve(submit(priority="urgent").id, admin_a))
    run(engine.reject(submit().id, admin_a, "no"))
    run(engine.cancel(submit(priority="urgent").id, requester))
    submit(scope="facility-2", priority="urgent")
    return engine


def test_counts_by_status(populated):
    stats = run(populated.compute_stats("facility-1"))

    assert stats == ApprovalStats(pending=2, approved=1, rejected=1, urgent=1)


def test_urgent_counts_only_pending(populated):
    # One approved and one cancelled urgent request exist in facility-1
    assert run(populated.compute_stats("facility-1")).urgent == 1


def test_scopes_are_isolated(populated):
    assert run(populated.compute_stats("facility-2")) == ApprovalStats(pending=1, urgent=1)
    assert run(populated.compute_stats("nowhere")) == ApprovalStats()


def test_no_scope_counts_everything(populated):
    stats = run(populated.compute_stats())

    assert stats.pending == 3
    assert stats.urgent == 2


def test_stats_ignore_list_filters(populated):
    async def both():
        listed = await populated.query("facility-1", ApprovalFilter(status="pending", module="hr"))
        stats = await populated.compute_stats("facility-1")
        return listed, stats

    listed, stats = run(both())

    assert len(listed) == 1
    assert stats.pending == 2


def test_stats_reflect_new_decisions(populated, admin_a):
    pending = run(populated.query("facility-1", ApprovalFilter(status="pending")))
    run(populated.approve(pending[0].id, admin_a))

    stats = run(populated.compute_stats("facility-1"))

    assert stats.pending == 1
    assert stats.approved == 2


def test_store_failure_propagates():
    aggregator = StatsAggregator(BrokenStore())

    with pytest.raises(StoreUnavailable):
        run(aggregator.compute_stats("facility-1"))
