"""
Per-field reaction pipeline.

A dependent field owns one ReactionPipeline. The pipeline watches the
combined state of the field's dependencies and, when it changes after
initialization:

1. if any dependency is loading, marks the field loading and waits;
2. otherwise marks the field loading and (re)arms a debounce timer;
3. when the timer fires, dispatches every reaction of the field with the
   latest dependency snapshot, each bounded by the timeout.

Each dispatch carries a generation number. A dependency change supersedes
the running generation: its calls are cancelled and any result that still
lands is dropped, so a slow reaction can never overwrite the result of a
newer one. Within a generation, results merge onto the node as they land;
the field stays loading until the last one settles. A timed-out or
failing reaction leaves the node at its current value.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from filterstate.descriptors import FilterConfig, Reaction
from filterstate.initial import call_maybe_async
from filterstate.node import FieldNode, Subscription
from filterstate.state_model import FieldState, merge_field_state

logger = logging.getLogger(__name__)


class ReactionPipeline:
    """Keeps one dependent node consistent with its dependencies."""

    def __init__(
        self,
        config: FilterConfig,
        node: FieldNode,
        dependency_nodes: Dict[str, FieldNode],
        loop: asyncio.AbstractEventLoop,
        timeout: float,
        debounce: float,
    ):
        self.config = config
        self.node = node
        self.dependency_nodes = dependency_nodes
        self.loop = loop
        self.timeout = timeout
        self.debounce = debounce

        self.generation = 0
        self.closed = False
        self._last_states: Optional[Dict[str, FieldState]] = None
        self._pending_states: Optional[Dict[str, FieldState]] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._outstanding = 0
        self._tasks: Set[asyncio.Task] = set()
        self._subscriptions: List[Subscription] = []

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def in_flight(self) -> int:
        """Number of reaction calls currently running."""
        return sum(1 for task in self._tasks if not task.done())

    def start(self) -> None:
        """Subscribe to dependencies; the current (seed) combination is not acted on."""
        self._last_states = self._collect()
        for dependency in self.dependency_nodes.values():
            self._subscriptions.append(dependency.subscribe(self._on_dependency_change, emit_current=False))

    def _collect(self) -> Dict[str, FieldState]:
        return {name: node.value for name, node in self.dependency_nodes.items()}

    def _mark_loading(self) -> None:
        if not self.node.value.loading:
            self.node.next(self.node.value.with_loading(True))

    def _on_dependency_change(self, _state: FieldState) -> None:
        if self.closed:
            return
        states = self._collect()
        if states == self._last_states:
            return
        self._last_states = states

        self._supersede()
        self._mark_loading()
        if any(state.loading for state in states.values()):
            # wait for every dependency to settle
            return

        self._pending_states = states
        self._timer = self.loop.call_later(self.debounce, self._dispatch)

    def _supersede(self) -> None:
        """Drop the pending dispatch and every call based on older inputs."""
        self._cancel_timer()
        self._pending_states = None
        self.generation += 1
        self._outstanding = 0
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _dispatch(self) -> None:
        self._timer = None
        if self.closed or self._pending_states is None:
            return
        states, self._pending_states = self._pending_states, None
        self._mark_loading()
        self.generation += 1
        reactions = self.config.reactions
        self._outstanding = len(reactions)
        logger.debug(f"Dispatching {len(reactions)} reaction(s) for {self.name!r} (generation {self.generation})")
        for reaction in reactions:
            task = self.loop.create_task(self._run(reaction, states, self.generation))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, reaction: Reaction, states: Dict[str, FieldState], generation: int) -> None:
        result: Any = None
        try:
            result = await asyncio.wait_for(call_maybe_async(reaction, states), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Reaction for field {self.name!r} timed out after {self.timeout}s; keeping previous value")
        except Exception as e:
            logger.warning(f"Reaction for field {self.name!r} failed: {e}; keeping previous value")

        if self.closed or generation != self.generation:
            logger.debug(f"Discarding stale reaction result for {self.name!r} (generation {generation})")
            return

        self._outstanding -= 1
        loading = self._outstanding > 0
        current = self.node.value
        try:
            merged = merge_field_state(current, result, loading=loading)
        except TypeError as e:
            logger.warning(f"Reaction for field {self.name!r} returned an invalid state: {e}")
            merged = current.with_loading(loading)
        self.node.next(merged)

    def close(self) -> None:
        """Stop reacting: cancel the timer, in-flight calls and subscriptions."""
        if self.closed:
            return
        self.closed = True
        self._cancel_timer()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
