"""
Tests for list filtering.

Every provided criterion must hold; absent criteria match everything.
"""

import asyncio
from datetime import timedelta, timezone
from decimal import Decimal

import pytest

from src.models.approval import ActorRef, ApprovalFilter
from src.services.query import matches


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def seeded(engine, make_draft, requester, clock):
    """Four requests one hour apart, oldest first"""
    other = ActorRef(id="u-200", name="Mehmet Kaya")
    drafts = [
        (make_draft(title="Printer toner", amount="100", currency="TRY"), requester),
        (make_draft(title="Laptop purchase", description="Developer workstation",
                    amount="50", currency="USD", exchange_rate="32"), other),
        (make_draft(module="hr", type="leave", title="Annual leave"), other),
        (make_draft(module="qurban", type="campaign", title="Campaign 2025",
                    amount="2500", currency="EUR", exchange_rate="35", priority="urgent"), requester),
    ]
    created = []
    for draft, actor in drafts:
        created.append(run(engine.submit(draft, actor)))
        clock.advance(3600)
    return created


def titles(requests):
    return [r.title for r in requests]


def test_no_filters_returns_all_newest_first(engine, seeded):
    result = run(engine.query("facility-1"))

    assert titles(result) == ["Campaign 2025", "Annual leave", "Laptop purchase", "Printer toner"]


def test_other_scope_is_empty(engine, seeded):
    assert run(engine.query("facility-9")) == []


class TestSearch:
    @pytest.mark.parametrize("text", ["laptop", "LAPTOP", "workstation", "mehmet"])
    def test_matches_title_description_requester(self, engine, seeded, text):
        result = run(engine.query("facility-1", ApprovalFilter(search_text=text)))

        assert "Laptop purchase" in titles(result)

    def test_requester_name_search(self, engine, seeded):
        result = run(engine.query("facility-1", ApprovalFilter(search_text="ayse")))

        assert titles(result) == ["Campaign 2025", "Printer toner"]

    def test_no_match(self, engine, seeded):
        assert run(engine.query("facility-1", ApprovalFilter(search_text="yacht"))) == []


class TestDateRange:
    def test_bounds_are_inclusive(self, engine, seeded):
        filters = ApprovalFilter(date_from=seeded[1].requested_at, date_to=seeded[2].requested_at)

        result = run(engine.query("facility-1", filters))

        assert titles(result) == ["Annual leave", "Laptop purchase"]

    def test_only_lower_bound(self, engine, seeded):
        result = run(engine.query("facility-1", ApprovalFilter(date_from=seeded[3].requested_at)))

        assert titles(result) == ["Campaign 2025"]

    def test_only_upper_bound(self, engine, seeded):
        result = run(engine.query("facility-1", ApprovalFilter(date_to=seeded[0].requested_at)))

        assert titles(result) == ["Printer toner"]

    def test_naive_bounds_are_utc(self, engine, seeded):
        naive = seeded[3].requested_at.astimezone(timezone.utc).replace(tzinfo=None)

        result = run(engine.query("facility-1", ApprovalFilter(date_from=naive)))

        assert titles(result) == ["Campaign 2025"]


class TestAmountRange:
    def test_compares_base_currency_amounts(self, engine, seeded):
        # 50 USD @ 32 = 1600 TRY, 2500 EUR @ 35 = 87500 TRY
        result = run(engine.query("facility-1", ApprovalFilter(min_amount=Decimal("1000"))))

        assert titles(result) == ["Campaign 2025", "Laptop purchase"]

    def test_bounds_are_inclusive(self, engine, seeded):
        filters = ApprovalFilter(min_amount=Decimal("1600"), max_amount=Decimal("1600"))

        assert titles(run(engine.query("facility-1", filters))) == ["Laptop purchase"]

    def test_missing_amount_counts_as_zero(self, engine, seeded):
        result = run(engine.query("facility-1", ApprovalFilter(max_amount=Decimal("0"))))

        assert titles(result) == ["Annual leave"]


class TestConjunction:
    def test_all_criteria_must_hold(self, engine, seeded):
        filters = ApprovalFilter(module="finance", search_text="ayse", min_amount=Decimal("50"))

        assert titles(run(engine.query("facility-1", filters))) == ["Printer toner"]

    def test_status_and_priority(self, engine, seeded, admin_a):
        run(engine.approve(seeded[0].id, admin_a))

        pending = run(engine.query("facility-1", ApprovalFilter(status="pending")))
        urgent = run(engine.query("facility-1", ApprovalFilter(status="pending", priority="urgent")))

        assert "Printer toner" not in titles(pending)
        assert titles(urgent) == ["Campaign 2025"]

    def test_query_has_no_side_effects(self, engine, store, seeded):
        before = run(store.query_all(None))
        run(engine.query("facility-1", ApprovalFilter(search_text="laptop")))

        assert run(store.query_all(None)) == before


def test_matches_empty_filter(seeded):
    assert matches(seeded[0], ApprovalFilter())


def test_matches_date_from_after_request(seeded):
    later = seeded[0].requested_at + timedelta(seconds=1)
    assert not matches(seeded[0], ApprovalFilter(date_from=later))


def test_matches_aware_bound_in_other_timezone(seeded):
    istanbul = timezone(timedelta(hours=3))
    bound = seeded[0].requested_at.astimezone(istanbul)

    assert matches(seeded[0], ApprovalFilter(date_from=bound, date_to=bound))
