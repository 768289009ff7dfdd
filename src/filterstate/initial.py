"""
Initial state resolution.

Computes one settled FieldState per field before the live graph exists.
Each field's starting value comes from the URL or persisted storage,
falling back to its static ``initial_value``. Then:

- a field with an ``initial_query`` runs it once every field listed in its
  ``initial_dependencies`` has settled;
- a dependent field without one runs its reactions over the settled
  initial states of its ``dependencies``, so the live graph starts
  consistent. A value restored from the URL or storage wins over the
  value those reactions compute.

Resolution is memoized per field: a dependency shared by several fields is
resolved once, and every requester awaits the same task. A failing or
slow query only degrades its own field.
"""

import asyncio
import dataclasses
import inspect
import logging
from typing import Any, Dict, Mapping, Optional

from filterstate.descriptors import FilterConfig
from filterstate.graph import INITIAL, DependencyGraph
from filterstate.query import UrlStateGroup
from filterstate.state_model import FieldState, merge_field_state
from filterstate.storage import KeyValueStorage, read_stored_value

logger = logging.getLogger(__name__)


async def call_maybe_async(func, *args) -> Any:
    """Call ``func`` and await the result if it is awaitable."""
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class InitialResolver:
    """Resolve the initial snapshot of a filter group.

    Args:
        config_map: Ordered name -> FilterConfig map
        url_state: Initialized URL collaborator
        storage: Optional persisted storage for ``is_save_storage`` fields
        timeout: Upper bound, in seconds, for each initial query or reaction
        graph: Resolution graph from ``DependencyGraph.for_resolution`` (built if omitted)
    """

    def __init__(
        self,
        config_map: Mapping[str, FilterConfig],
        url_state: UrlStateGroup,
        storage: Optional[KeyValueStorage] = None,
        timeout: float = 2.0,
        graph: Optional[DependencyGraph] = None,
    ):
        self.config_map = config_map
        self.url_state = url_state
        self.storage = storage
        self.timeout = timeout
        if graph is None:
            graph = DependencyGraph.for_resolution(config_map, DependencyGraph.from_configs(config_map, INITIAL))
        self.graph = graph
        self._tasks: Dict[str, 'asyncio.Task[FieldState]'] = {}

    def get_initial_value(self, name: str) -> Any:
        """Value restored from the URL, else from storage, else None."""
        config = self.config_map[name]
        value = self.url_state.get_query_value(name)
        if value is None and config.is_save_storage and self.storage is not None:
            value = read_stored_value(self.storage, name)
        return value

    def resolve_field(self, name: str) -> 'asyncio.Task[FieldState]':
        """Return the (memoized) task resolving one field's initial state."""
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._resolve_field(name))
            self._tasks[name] = task
        return task

    async def _resolve_field(self, name: str) -> FieldState:
        config = self.config_map[name]
        restored = self.get_initial_value(name)
        field_state = config.initial_state(restored)
        dependency_names = self.graph.dependencies_of(name)
        if config.initial_query is None and not dependency_names:
            return field_state

        dependency_states: Dict[str, FieldState] = {}
        if dependency_names:
            # fan-in: every dependency must settle first
            settled = await asyncio.gather(*(self.resolve_field(dep) for dep in dependency_names))
            dependency_states = dict(zip(dependency_names, settled))

        if config.initial_query is not None:
            return await self._run_query(config, field_state, dependency_states)
        return await self._run_reactions(config, field_state, dependency_states, restored)

    async def _run_query(
        self,
        config: FilterConfig,
        field_state: FieldState,
        dependency_states: Dict[str, FieldState],
    ) -> FieldState:
        try:
            result = await asyncio.wait_for(
                call_maybe_async(config.initial_query, dependency_states),
                timeout=self.timeout,
            )
            return merge_field_state(field_state, result, loading=False)
        except asyncio.TimeoutError:
            logger.error(f"Initial value request timeout for field {config.name!r} after {self.timeout}s")
            return merge_field_state(field_state, {'value': config.initial_value}, loading=False)
        except Exception as e:
            logger.error(f"Initial value request failed for field {config.name!r}: {e}")
            return merge_field_state(field_state, {'value': config.initial_value}, loading=False)

    async def _call_reaction(self, config: FilterConfig, reaction, dependency_states: Dict[str, FieldState]) -> Any:
        try:
            return await asyncio.wait_for(call_maybe_async(reaction, dependency_states), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Initial reaction timeout for field {config.name!r} after {self.timeout}s")
        except Exception as e:
            logger.error(f"Initial reaction failed for field {config.name!r}: {e}")
        return None

    async def _run_reactions(
        self,
        config: FilterConfig,
        field_state: FieldState,
        dependency_states: Dict[str, FieldState],
        restored: Any,
    ) -> FieldState:
        state = field_state
        calls = [self._call_reaction(config, reaction, dependency_states) for reaction in config.reactions]
        # merge in completion order, like the live pipeline
        for call in asyncio.as_completed(calls):
            result = await call
            try:
                state = merge_field_state(state, result, loading=False)
            except TypeError as e:
                logger.error(f"Initial reaction for field {config.name!r} returned an invalid state: {e}")
        if restored is not None:
            state = dataclasses.replace(state, value=restored)
        return state

    async def resolve(self) -> Dict[str, FieldState]:
        """Resolve every field and return the snapshot in declaration order."""
        names = list(self.config_map)
        states = await asyncio.gather(*(self.resolve_field(name) for name in names))
        return dict(zip(names, states))
