"""
Tests for the one-vote-per-voter guard.
"""

import asyncio
from unittest.mock import patch

import pytest

from viralboost.errors import Conflict
from viralboost.services.vote_service import ALREADY_VOTED, VoteGuard


async def _seed_project(store):
    await store.projects.upsert(
        "p1",
        {"id": "p1", "title": "Launch", "votes": 0, "views": 0, "createdAt": "2024-06-10T12:00:00.000Z"},
    )


@pytest.mark.asyncio
async def test_repeat_voter_is_rejected(store):
    await _seed_project(store)
    guard = VoteGuard(store)

    first = await guard.try_vote("p1", "u1")
    repeat = await guard.try_vote("p1", "u1")
    other = await guard.try_vote("p1", "u2")

    assert (first.accepted, first.votes) == (True, 1)
    assert (repeat.accepted, repeat.votes, repeat.reason) == (False, 1, ALREADY_VOTED)
    assert (other.accepted, other.votes) == (True, 2)

    stored = await store.projects.get("p1")
    assert stored["votes"] == 2
    assert stored["title"] == "Launch"
    assert await guard.voters("p1") == ["u1", "u2"]


@pytest.mark.asyncio
async def test_concurrent_votes_from_same_voter_count_once(store):
    await _seed_project(store)
    guard = VoteGuard(store)

    results = await asyncio.gather(*(guard.try_vote("p1", "u1") for _ in range(10)))

    assert sum(r.accepted for r in results) == 1
    assert (await store.projects.get("p1"))["votes"] == 1


@pytest.mark.asyncio
async def test_concurrent_distinct_voters_all_count(store):
    await _seed_project(store)
    guard = VoteGuard(store)

    await asyncio.gather(*(guard.try_vote("p1", f"u{i}") for i in range(25)))

    assert (await store.projects.get("p1"))["votes"] == 25
    assert len(await guard.voters("p1")) == 25


@pytest.mark.asyncio
async def test_vote_on_unknown_project_is_still_recorded(store):
    guard = VoteGuard(store)

    result = await guard.try_vote("ghost", "u1")

    assert result.accepted
    assert await store.projects.get("ghost") is None
    assert await guard.voters("ghost") == ["u1"]


@pytest.mark.asyncio
async def test_register_rejects_existing_id_and_keeps_count(store):
    guard = VoteGuard(store)
    await guard.register({"id": "p1", "title": "Launch"})
    await guard.try_vote("p1", "u1")
    await guard.try_vote("p1", "u2")

    with pytest.raises(Conflict):
        await guard.register({"id": "p1", "title": "Relaunch"})

    stored = await store.projects.get("p1")
    assert (stored["title"], stored["votes"]) == ("Launch", 2)
    assert (await guard.try_vote("p1", "u3")).votes == 3


@pytest.mark.asyncio
async def test_register_counts_votes_recorded_before_publication(store):
    guard = VoteGuard(store)
    await guard.try_vote("p1", "u1")

    project = await guard.register({"id": "p1", "title": "Late", "votes": 40})

    assert project["votes"] == 1
    assert (await store.projects.get("p1"))["votes"] == 1


@pytest.mark.asyncio
async def test_forget_waits_for_in_flight_vote(store):
    await _seed_project(store)
    guard = VoteGuard(store)
    real_get = store.projects.get

    async def slow_get(key):
        await asyncio.sleep(0.01)
        return await real_get(key)

    with patch.object(store.projects, "get", slow_get):
        vote = asyncio.create_task(guard.try_vote("p1", "u1"))
        await asyncio.sleep(0)
        await guard.forget("p1")
        await vote

    assert await store.projects.get("p1") is None
    assert await guard.voters("p1") == []
