"""Tests for group streams."""
import asyncio
import pytest

from filterstate import FieldNode, FieldState, GroupStream
from filterstate.aggregator import is_quiescent, project_values


def _nodes():
    return {
        "a": FieldNode(FieldState(name="a", value=1)),
        "b": FieldNode(FieldState(name="b", value=2)),
    }


@pytest.mark.asyncio
async def test_value_stream_emits_seed_after_debounce():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.01, project_values)
    seen = []
    stream.subscribe(seen.append)
    assert seen == []
    await asyncio.sleep(0.05)
    assert seen == [{"a": 1, "b": 2}]


@pytest.mark.asyncio
async def test_identical_snapshots_emit_once():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.01, skip_seed=True)
    seen = []
    stream.subscribe(seen.append)

    nodes["a"].next(FieldState(name="a", value=5))
    await asyncio.sleep(0.03)
    nodes["a"].next(FieldState(name="a", value=5))
    await asyncio.sleep(0.03)

    assert len(seen) == 1
    assert seen[0]["a"].value == 5


@pytest.mark.asyncio
async def test_seed_is_dedup_baseline_when_skipped():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.01, skip_seed=True)
    seen = []
    stream.subscribe(seen.append)
    nodes["b"].next(FieldState(name="b", value=2))
    await asyncio.sleep(0.03)
    assert seen == []


@pytest.mark.asyncio
async def test_loading_snapshots_suppressed():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.01, skip_seed=True)
    seen = []
    stream.subscribe(seen.append)

    nodes["a"].next(FieldState(name="a", value=3, loading=True))
    await asyncio.sleep(0.03)
    assert seen == []

    nodes["a"].next(FieldState(name="a", value=4))
    await asyncio.sleep(0.03)
    assert len(seen) == 1
    assert all(is_quiescent(snapshot) for snapshot in seen)


@pytest.mark.asyncio
async def test_burst_coalesced_by_debounce():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.03, project_values, skip_seed=True)
    seen = []
    stream.subscribe(seen.append)
    for value in range(3, 8):
        nodes["a"].next(FieldState(name="a", value=value))
    await asyncio.sleep(0.06)
    assert seen == [{"a": 7, "b": 2}]


@pytest.mark.asyncio
async def test_close_releases_node_subscriptions():
    nodes = _nodes()
    stream = GroupStream(nodes, asyncio.get_running_loop(), 0.01)
    seen = []
    subscription = stream.subscribe(seen.append)
    stream.subscribe(seen.append)
    assert nodes["a"].subscriber_count == 2

    subscription.unsubscribe()
    assert stream.subscriber_count == 1
    stream.close()
    assert stream.subscriber_count == 0
    assert nodes["a"].subscriber_count == 0
    await asyncio.sleep(0.03)
    assert seen == []
    assert stream.subscribe(seen.append).closed
