"""
Overlapping events across connections.

Every socket runs its own receive loop, so dispatch and disconnect calls
for different connections interleave on the event loop. Tasks are queued
behind the held state lock where a test needs a specific arrival order.
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.core.session.lifecycle import SessionLifecycle
from tests.conftest import drain, events
from tests.test_properties import check_invariants


async def connect_many(lifecycle: SessionLifecycle, count: int) -> list:
    return [await lifecycle.connect(f"u{i}@u.edu") for i in range(count)]


async def queued(lifecycle: SessionLifecycle, *calls) -> list:
    """Run coroutines in the given order, all parked on the state lock first."""
    async with lifecycle._state_lock:
        tasks = [asyncio.create_task(call) for call in calls]
        # Let every task reach the lock before it is released
        await asyncio.sleep(0)
    return await asyncio.gather(*tasks)


class TestConcurrentJoins:

    @pytest.mark.asyncio
    async def test_simultaneous_joins_pair_everyone(self, lifecycle):
        conns = await connect_many(lifecycle, 20)

        results = await asyncio.gather(*(lifecycle.dispatch(c.id, "join") for c in conns))

        assert all(results)
        check_invariants(lifecycle)
        assert len(lifecycle.pool) == 0
        assert all(c.is_paired for c in conns)

    @pytest.mark.asyncio
    async def test_odd_count_leaves_one_waiter(self, lifecycle):
        conns = await connect_many(lifecycle, 7)

        await queued(lifecycle, *(lifecycle.dispatch(c.id, "join") for c in conns))

        check_invariants(lifecycle)
        assert len(lifecycle.pool) == 1
        assert sum(1 for c in conns if c.is_paired) == 6

    @pytest.mark.asyncio
    async def test_repeated_join_from_one_connection_queues_once(self, lifecycle):
        a = await lifecycle.connect("a@u.edu")

        await asyncio.gather(*(lifecycle.dispatch(a.id, "join") for _ in range(5)))

        assert lifecycle.pool.snapshot() == [a.id]
        assert events(a) == ["waiting"]


class TestMixedTraffic:

    @pytest.mark.asyncio
    async def test_next_join_and_disconnect_interleaved(self, lifecycle):
        conns = await connect_many(lifecycle, 12)
        await asyncio.gather(*(lifecycle.dispatch(c.id, "join") for c in conns))

        calls = []
        for i, conn in enumerate(conns):
            if i % 4 == 0:
                calls.append(lifecycle.disconnect(conn.id))
            elif i % 4 == 1:
                calls.append(lifecycle.dispatch(conn.id, "next"))
            elif i % 4 == 2:
                calls.append(lifecycle.dispatch(conn.id, "join"))
            else:
                calls.append(lifecycle.dispatch(conn.id, "offer", {"sdp": f"v={i}"}))
        await queued(lifecycle, *calls)

        check_invariants(lifecycle)
        assert lifecycle.registry.count == 9

        # Tearing down everything at once leaves nothing behind
        await asyncio.gather(*(lifecycle.disconnect(c.id) for c in conns))
        assert lifecycle.registry.count == 0
        assert len(lifecycle.pool) == 0

    @pytest.mark.asyncio
    async def test_both_sides_press_next_together(self, lifecycle):
        a, b = await connect_many(lifecycle, 2)
        await lifecycle.dispatch(a.id, "join")
        await lifecycle.dispatch(b.id, "join")
        drain(a), drain(b)

        await queued(lifecycle, lifecycle.dispatch(a.id, "next"), lifecycle.dispatch(b.id, "next"))

        check_invariants(lifecycle)
        # a leaves first and waits; b was already dropped to idle, so its next is ignored
        assert lifecycle.pool.snapshot() == [a.id]
        assert events(a) == ["waiting"]
        assert events(b) == ["partner_left"]
        assert not b.is_paired and b.id not in lifecycle.pool

    @pytest.mark.asyncio
    async def test_disconnect_races_block(self, lifecycle):
        a, b = await connect_many(lifecycle, 2)
        await lifecycle.dispatch(a.id, "join")
        await lifecycle.dispatch(b.id, "join")
        drain(a)

        await queued(lifecycle, lifecycle.disconnect(b.id), lifecycle.dispatch(a.id, "block"))

        check_invariants(lifecycle)
        assert len(lifecycle.blocks) == 0
        assert events(a) == ["partner_left", "blocked_ack"]


class TestDisconnectRacesRelay:

    @pytest.mark.asyncio
    async def test_offer_after_partner_disconnect_is_dropped(self, lifecycle, metrics):
        a, b = await connect_many(lifecycle, 2)
        await lifecycle.dispatch(a.id, "join")
        await lifecycle.dispatch(b.id, "join")
        drain(a), drain(b)

        gone, delivered = await queued(
            lifecycle,
            lifecycle.disconnect(b.id),
            lifecycle.dispatch(a.id, "offer", {"sdp": "v=0"}),
        )

        assert gone is b
        assert delivered is False
        assert events(a) == ["partner_left"]
        assert drain(b) == []
        assert metrics.get_snapshot()["relays_delivered"] == 0
        check_invariants(lifecycle)

    @pytest.mark.asyncio
    async def test_offer_before_partner_disconnect_is_delivered(self, lifecycle, metrics):
        a, b = await connect_many(lifecycle, 2)
        await lifecycle.dispatch(a.id, "join")
        await lifecycle.dispatch(b.id, "join")
        drain(a), drain(b)

        delivered, gone = await queued(
            lifecycle,
            lifecycle.dispatch(a.id, "offer", {"sdp": "v=0"}),
            lifecycle.disconnect(b.id),
        )

        assert delivered is True
        assert gone is b
        assert drain(b) == [("offer", {"sdp": "v=0"})]
        assert events(a) == ["partner_left"]
        assert metrics.get_snapshot()["relays_delivered"] == 1
        check_invariants(lifecycle)

    @pytest.mark.asyncio
    async def test_gathered_disconnect_and_offer(self, lifecycle):
        """Plain gather with no forced order: either outcome keeps state consistent."""
        a, b = await connect_many(lifecycle, 2)
        await lifecycle.dispatch(a.id, "join")
        await lifecycle.dispatch(b.id, "join")
        drain(a), drain(b)

        await asyncio.gather(
            lifecycle.disconnect(b.id),
            lifecycle.dispatch(a.id, "offer", {"sdp": "v=0"}),
        )

        check_invariants(lifecycle)
        assert "partner_left" in events(a)
        assert not a.is_paired


batch = st.lists(
    st.tuples(
        st.sampled_from(["join", "next", "block", "offer", "disconnect"]),
        st.integers(min_value=0, max_value=9),
    ),
    min_size=1,
    max_size=12,
)


class TestConcurrentInvariants:

    @given(batches=st.lists(batch, min_size=1, max_size=6))
    @settings(max_examples=100, deadline=None)
    def test_invariants_hold_when_batches_overlap(self, batches):
        """Property: events gathered in overlapping batches never break pairing."""

        async def scenario():
            lifecycle = SessionLifecycle(ConnectionRegistry())
            conns = [await lifecycle.connect(f"u{i % 4}@u.edu") for i in range(10)]

            for ops in batches:
                calls = []
                for name, index in ops:
                    conn = conns[index]
                    if name == "disconnect":
                        calls.append(lifecycle.disconnect(conn.id))
                    elif name == "offer":
                        calls.append(lifecycle.dispatch(conn.id, name, {"n": index}))
                    else:
                        calls.append(lifecycle.dispatch(conn.id, name))
                await asyncio.gather(*calls)
                check_invariants(lifecycle)

            await asyncio.gather(*(lifecycle.disconnect(c.id) for c in conns))
            assert lifecycle.registry.count == 0
            assert len(lifecycle.pool) == 0

        asyncio.run(scenario())
