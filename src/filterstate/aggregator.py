"""
Group-level streams derived from the field nodes.

A GroupStream combines the latest state of every node and emits only
quiescent snapshots (no field loading), deduplicated structurally and
debounced. Streams are cold: each subscription runs its own filter, dedup
and debounce stage, like the per-subscriber pipelines of an observable.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from filterstate.node import FieldNode, Subscription
from filterstate.state_model import FieldState

logger = logging.getLogger(__name__)

Projection = Callable[[Dict[str, FieldState]], Any]


def project_states(states: Dict[str, FieldState]) -> Dict[str, FieldState]:
    return dict(states)


def project_values(states: Dict[str, FieldState]) -> Dict[str, Any]:
    return {name: state.value for name, state in states.items()}


def is_quiescent(states: Mapping[str, FieldState]) -> bool:
    """True when no field is loading."""
    return all(not state.loading for state in states.values())


class _GroupSubscriber:
    """Filter -> dedup -> debounce stage for one subscriber."""

    def __init__(self, stream: 'GroupStream', callback: Callable[[Any], None]):
        self.stream = stream
        self.callback = callback
        self.closed = False
        self._last: Any = None
        self._has_last = False
        self._pending: Any = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._subscriptions: List[Subscription] = []

    def start(self) -> None:
        for node in self.stream.nodes.values():
            self._subscriptions.append(node.subscribe(self._on_change, emit_current=False))
        if self.stream.skip_seed:
            states = self.stream.snapshot()
            if is_quiescent(states):
                self._last = self.stream.project(states)
                self._has_last = True
        else:
            self._on_change(None)

    def _on_change(self, _state: Optional[FieldState]) -> None:
        if self.closed:
            return
        states = self.stream.snapshot()
        if not is_quiescent(states):
            return
        projected = self.stream.project(states)
        if self._has_last and projected == self._last:
            return
        self._last = projected
        self._has_last = True
        self._pending = projected
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self.stream.loop.call_later(self.stream.debounce, self._flush)

    def _flush(self) -> None:
        self._timer = None
        if self.closed:
            return
        value, self._pending = self._pending, None
        try:
            self.callback(value)
        except Exception as e:
            logger.warning(f"Error in group stream subscriber: {e}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        self.stream._subscribers.discard(self)


class GroupStream:
    """Quiescent, deduplicated, debounced view over a set of field nodes.

    Args:
        nodes: Ordered name -> FieldNode map
        loop: Event loop used for debounce timers
        debounce: Debounce window in seconds
        project: Maps a state snapshot to the emitted value
        skip_seed: Do not emit the snapshot current at subscription time
    """

    def __init__(
        self,
        nodes: Dict[str, FieldNode],
        loop: asyncio.AbstractEventLoop,
        debounce: float,
        project: Projection = project_states,
        skip_seed: bool = False,
    ):
        self.nodes = nodes
        self.loop = loop
        self.debounce = debounce
        self.project = project
        self.skip_seed = skip_seed
        self.closed = False
        self._subscribers: Set[_GroupSubscriber] = set()

    def snapshot(self) -> Dict[str, FieldState]:
        """Current state of every node, settled or not."""
        return {name: node.value for name, node in self.nodes.items()}

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        """Receive each settled snapshot (projected) after the debounce window."""
        if self.closed:
            subscription = Subscription()
            subscription.unsubscribe()
            return subscription
        subscriber = _GroupSubscriber(self, callback)
        self._subscribers.add(subscriber)
        subscriber.start()
        return Subscription(subscriber.close)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def close(self) -> None:
        """Close every subscription made through this stream."""
        self.closed = True
        for subscriber in list(self._subscribers):
            subscriber.close()
