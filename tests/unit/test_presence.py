"""
Tests for the presence registry.
"""

import pytest

from viralboost.realtime.connection import Connection
from viralboost.realtime.events import PresenceProfile
from viralboost.realtime.presence import PresenceRegistry


def _profile(user_id: str, name: str = "Alice") -> PresenceProfile:
    return PresenceProfile(id=user_id, name=name, plan="free", avatar="👤")


@pytest.mark.asyncio
async def test_first_connection_is_reported(make_transport):
    registry = PresenceRegistry()
    a, b = Connection(make_transport()), Connection(make_transport())

    assert await registry.register("u1", a) is True
    assert await registry.register("u1", b) is False
    # Same connection again is a no-op
    assert await registry.register("u1", a) is False

    assert registry.is_online("u1")
    assert set(registry.connections_for("u1")) == {a, b}
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_unregister_signals_departure_only_on_last_connection(make_transport):
    registry = PresenceRegistry()
    a, b = Connection(make_transport()), Connection(make_transport())
    await registry.register("u1", a)
    await registry.register("u1", b)
    await registry.set_profile("u1", _profile("u1"))

    assert await registry.unregister(a) is None
    assert registry.is_online("u1")

    assert await registry.unregister(b) == "u1"
    assert not registry.is_online("u1")
    assert registry.profile("u1") is None
    assert registry.snapshot() == []


@pytest.mark.asyncio
async def test_unregister_unknown_connection(make_transport):
    registry = PresenceRegistry()
    assert await registry.unregister(Connection(make_transport())) is None


@pytest.mark.asyncio
async def test_connection_cannot_belong_to_two_users(make_transport):
    registry = PresenceRegistry()
    conn = Connection(make_transport())
    await registry.register("u1", conn)

    with pytest.raises(ValueError):
        await registry.register("u2", conn)

    assert registry.owner_of(conn) == "u1"


@pytest.mark.asyncio
async def test_set_profile_overwrites(make_transport):
    registry = PresenceRegistry()
    await registry.register("u1", Connection(make_transport()))
    await registry.set_profile("u1", _profile("u1", "Alice"))
    await registry.set_profile("u1", PresenceProfile(id="u1", name="Alicia", plan="pro", avatar="🚀"))

    [profile] = registry.snapshot()
    assert profile.name == "Alicia"
    assert profile.plan == "pro"
    assert profile.avatar == "🚀"


@pytest.mark.asyncio
async def test_set_profile_skipped_after_last_connection_left(make_transport):
    registry = PresenceRegistry()
    conn = Connection(make_transport())
    await registry.register("u1", conn)
    await registry.unregister(conn)

    assert await registry.set_profile("u1", _profile("u1")) is False
    assert registry.profile("u1") is None
