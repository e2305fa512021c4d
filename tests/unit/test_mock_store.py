"""
Contract tests for call record storage, run against the in-memory store.

These are the guarantees callers rely on regardless of backend:
- at most one call per group, with every racing creator seeing the winner
- a stale removal never deletes a newer call
"""

import asyncio

import pytest

from src.core.calls.models import CallRecord
from src.infrastructure.dynamodb.client import MockCallRecordStore


def make_record(
    group_id: str = "g1",
    call_id: str = "c1",
    region: str = "us1",
    host: str = "10.0.0.1",
) -> CallRecord:
    return CallRecord(
        group_id=group_id,
        call_id=call_id,
        backend_host=host,
        backend_region=region,
        creator="u1",
    )


@pytest.fixture
def store() -> MockCallRecordStore:
    return MockCallRecordStore()


class TestGetOrAdd:
    """Tests for creating calls."""

    @pytest.mark.asyncio
    async def test_first_add_wins_and_second_sees_it(self, store):
        """A second creator for the group gets the original call back."""
        original = make_record(call_id="c1")

        assert await store.get_or_add_call_record(original) == original
        assert await store.get_or_add_call_record(make_record(call_id="c2")) == original

    @pytest.mark.asyncio
    async def test_concurrent_adds_all_observe_same_winner(self, store):
        candidates = [
            make_record(call_id=f"c{i}", host=f"10.0.0.{i}")
            for i in range(20)
        ]

        results = await asyncio.gather(
            *(store.get_or_add_call_record(c) for c in candidates)
        )

        winner = results[0]
        assert winner in candidates
        assert all(result == winner for result in results)
        assert await store.get_call_record("g1") == winner

    @pytest.mark.asyncio
    async def test_round_trip_preserves_every_field(self, store):
        record = make_record()
        await store.get_or_add_call_record(record)

        stored = await store.get_call_record("g1")

        assert stored == record
        assert stored.backend_host == "10.0.0.1"
        assert stored.backend_region == "us1"
        assert stored.creator == "u1"

    @pytest.mark.asyncio
    async def test_groups_are_independent(self, store):
        first = make_record("g1", "c1")
        second = make_record("g2", "c2")

        assert await store.get_or_add_call_record(first) == first
        assert await store.get_or_add_call_record(second) == second


class TestGet:
    """Tests for point lookups."""

    @pytest.mark.asyncio
    async def test_unknown_group_returns_none(self, store):
        assert await store.get_call_record("missing") is None


class TestRemove:
    """Tests for removing calls."""

    @pytest.mark.asyncio
    async def test_remove_then_get_returns_none(self, store):
        await store.get_or_add_call_record(make_record())

        await store.remove_call_record("g1", "c1")

        assert await store.get_call_record("g1") is None

    @pytest.mark.asyncio
    async def test_stale_remove_leaves_newer_call(self, store):
        """Removing an old era must not delete the group's current call."""
        current = make_record(call_id="c2")
        await store.get_or_add_call_record(current)

        await store.remove_call_record("g1", "c1")

        assert await store.get_call_record("g1") == current

    @pytest.mark.asyncio
    async def test_remove_missing_group_succeeds(self, store):
        await store.remove_call_record("missing", "c1")

    @pytest.mark.asyncio
    async def test_group_can_start_new_call_after_removal(self, store):
        """A move to another backend is remove then add with a new call_id."""
        await store.get_or_add_call_record(make_record(call_id="c1"))
        await store.remove_call_record("g1", "c1")

        replacement = make_record(call_id="c2", host="10.0.0.2")

        assert await store.get_or_add_call_record(replacement) == replacement


class TestRegionQuery:
    """Tests for listing calls by region."""

    @pytest.mark.asyncio
    async def test_returns_exactly_records_in_region(self, store):
        us_calls = [make_record("g1", "c1", "us1"), make_record("g2", "c2", "us1")]
        eu_call = make_record("g3", "c3", "eu1")
        for record in [*us_calls, eu_call]:
            await store.get_or_add_call_record(record)

        result = await store.get_call_records_for_region("us1")

        assert sorted(result, key=lambda r: r.group_id) == us_calls
        assert await store.get_call_records_for_region("eu1") == [eu_call]

    @pytest.mark.asyncio
    async def test_empty_region_returns_empty_list(self, store):
        await store.get_or_add_call_record(make_record())

        assert await store.get_call_records_for_region("ap1") == []

    @pytest.mark.asyncio
    async def test_removed_calls_leave_region(self, store):
        await store.get_or_add_call_record(make_record())
        await store.remove_call_record("g1", "c1")

        assert await store.get_call_records_for_region("us1") == []
