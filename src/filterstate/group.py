"""
FilterGroup: the live reactive engine for a set of filter fields.

Lifecycle:
- Built from descriptors; configuration (co-required pairs, cycles, query
  schemas) is validated immediately.
- ``init()`` resolves the initial snapshot, creates one FieldNode per
  field, wires a ReactionPipeline for every dependent field and builds the
  group streams. Concurrent callers share one initialization.
- ``destroy()`` releases every subscription, timer and in-flight reaction.

Thread safety: Not thread-safe (all operations expected on the event loop
thread that ran ``init``).
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from filterstate.aggregator import GroupStream, project_states, project_values
from filterstate.config import FilterGroupOptions, get_default_options
from filterstate.descriptors import ConfigLike, FilterConfig, build_config_map
from filterstate.graph import INITIAL, LIVE, DependencyGraph
from filterstate.initial import InitialResolver
from filterstate.node import FieldNode, Subscription
from filterstate.pipeline import ReactionPipeline
from filterstate.query import Location, UrlStateGroup
from filterstate.state_model import FieldState, merge_field_state
from filterstate.storage import KeyValueStorage, write_stored_values

logger = logging.getLogger(__name__)

EVENT_INITIALIZED = 'filter_initialized'
EVENT_STATE_CHANGE = 'filter_state_change'
EVENT_VALUES_CHANGE = 'filter_values_change'


class FilterGroup:
    """A group of interdependent filter fields.

    Args:
        config_map: Ordered name -> FilterConfig (or descriptor dict) map
        options: Group options; defaults to ``get_default_options()``
        location: Location the URL collaborator reads and writes
        storage: Persisted storage for ``is_save_storage`` fields
        url_state: Pre-built URL collaborator (overrides ``location``)
    """

    def __init__(
        self,
        config_map: Mapping[str, ConfigLike],
        options: Optional[FilterGroupOptions] = None,
        location: Optional[Location] = None,
        storage: Optional[KeyValueStorage] = None,
        url_state: Optional[UrlStateGroup] = None,
    ):
        self.config_map: Dict[str, FilterConfig] = build_config_map(config_map)
        self.options = options if options is not None else get_default_options()
        self.url_state = url_state if url_state is not None else UrlStateGroup(location)
        self.storage = storage

        # Both graphs must be acyclic before anything runs
        self.graph = DependencyGraph.from_configs(self.config_map, LIVE)
        self.initial_graph = DependencyGraph.from_configs(self.config_map, INITIAL)
        self.resolution_graph = DependencyGraph.for_resolution(self.config_map, self.initial_graph)
        # Query schemas are compiled here so an unsupported kind fails fast
        self.url_state.init(self.config_map.values())

        self.loading = False
        self.destroyed = False
        self._node_map: Dict[str, FieldNode] = {}
        self._pipelines: Dict[str, ReactionPipeline] = {}
        self._subscriptions: List[Subscription] = []
        self._final_stream: Optional[GroupStream] = None
        self._final_value_stream: Optional[GroupStream] = None
        self._init_task: Optional['asyncio.Task[Dict[str, FieldState]]'] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # === Read-only views ===

    @property
    def filter_group_stream(self) -> Optional[GroupStream]:
        """Settled group states; None until ``init`` completes."""
        return self._final_stream

    @property
    def filter_group_value_stream(self) -> Optional[GroupStream]:
        """Settled group values; None until ``init`` completes."""
        return self._final_value_stream

    @property
    def filter_keys(self) -> List[str]:
        """Field names in declaration order."""
        return list(self.config_map)

    def get_filter_config(self, name: str) -> Optional[FilterConfig]:
        """Descriptor of a field, or None if it is not configured."""
        return self.config_map.get(name)

    def get_field_node(self, name: str) -> Optional[FieldNode]:
        """Live node of a field (None before ``init`` or for unknown names)."""
        return self._node_map.get(name)

    def get_state(self) -> Dict[str, FieldState]:
        """Current state of every node, loading or not."""
        return {name: node.value for name, node in self._node_map.items()}

    # === Initialization ===

    async def init(self) -> Dict[str, FieldState]:
        """Initialize the group and return the initial snapshot.

        Idempotent: every call, concurrent or later, awaits the same
        initialization.
        """
        if self._init_task is None:
            self.loading = True
            self._init_task = asyncio.ensure_future(self._init())
            self._init_task.add_done_callback(self._on_init_done)
        return await asyncio.shield(self._init_task)

    def _on_init_done(self, _task: asyncio.Task) -> None:
        self.loading = False

    async def _init(self) -> Dict[str, FieldState]:
        self._loop = asyncio.get_running_loop()

        resolver = InitialResolver(
            self.config_map,
            self.url_state,
            storage=self.storage,
            timeout=self.options.initial_timeout,
            graph=self.resolution_graph,
        )
        initial_values = await resolver.resolve()
        if self.destroyed:
            logger.debug("FilterGroup destroyed during init; not wiring nodes")
            return initial_values

        self._report(EVENT_INITIALIZED, initial_values)

        # Dependencies first, so every pipeline finds its upstream nodes
        for name in self.graph.topological_order():
            self._initialize_node(name, initial_values)

        self._final_stream = GroupStream(
            self._node_map, self._loop, self.options.group_debounce, project_states, skip_seed=True
        )
        self._final_value_stream = GroupStream(
            self._node_map, self._loop, self.options.group_debounce, project_values
        )
        self._subscriptions.append(self._final_stream.subscribe(self._on_group_state))
        self._subscriptions.append(self._final_value_stream.subscribe(self._on_group_values))

        logger.debug(f"FilterGroup initialized with fields: {self.filter_keys}")
        return initial_values

    def _initialize_node(self, name: str, initial_values: Dict[str, FieldState]) -> FieldNode:
        config = self.config_map[name]
        initial = initial_values.get(name) or config.initial_state()
        node = FieldNode(initial.with_loading(False))
        self._node_map[name] = node

        dependency_names = self.graph.dependencies_of(name)
        if not dependency_names:
            return node

        pipeline = ReactionPipeline(
            config,
            node,
            {dep: self._node_map[dep] for dep in dependency_names},
            self._loop,
            timeout=self.options.timeout,
            debounce=self.options.reaction_debounce,
        )
        pipeline.start()
        self._pipelines[name] = pipeline
        return node

    # === Group subscribers owned by the engine ===

    def _on_group_state(self, states: Dict[str, FieldState]) -> None:
        self._report(EVENT_STATE_CHANGE, states)
        values = {name: state.value for name, state in states.items()}
        self.url_state.set_query_values(values)
        if self.storage is not None:
            stored = {name: value for name, value in values.items() if self.config_map[name].is_save_storage}
            if stored:
                write_stored_values(self.storage, stored)
        logger.debug(f"Wrote back settled values: {values}")

    def _on_group_values(self, values: Dict[str, Any]) -> None:
        self._report(EVENT_VALUES_CHANGE, values)

    def _report(self, event: str, value: Any) -> None:
        reporter = self.options.event_reporter
        if reporter is None:
            return
        try:
            reporter(event, {'value': value, 'path': self.url_state.current_path})
        except Exception as e:
            logger.warning(f"Error in event reporter for {event!r}: {e}")

    # === Mutation ===

    def set_field_state(self, name: str, state: Mapping[str, Any]) -> None:
        """Merge a partial state into a field's node.

        Unknown fields (or calls before ``init``) log a warning and are
        ignored.
        """
        node = self.get_field_node(name)
        if node is None:
            logger.warning(f"Field {name} does not exist.")
            return
        try:
            node.next(merge_field_state(node.value, state))
        except TypeError as e:
            logger.warning(f"Ignoring invalid state for field {name!r}: {e}")

    # === Disposal ===

    def destroy(self) -> None:
        """Release every subscription, timer and in-flight reaction. Idempotent."""
        if self.destroyed:
            return
        self.destroyed = True
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        for stream in (self._final_stream, self._final_value_stream):
            if stream is not None:
                stream.close()
        for pipeline in self._pipelines.values():
            pipeline.close()
        self._pipelines.clear()
        for node in self._node_map.values():
            node.close()
        logger.debug("FilterGroup destroyed")


def create_filter_group(
    config_map: Mapping[str, ConfigLike],
    options: Optional[FilterGroupOptions] = None,
    **kwargs: Any,
) -> FilterGroup:
    """Build a FilterGroup from a name -> descriptor map."""
    return FilterGroup(config_map, options, **kwargs)


def create_filter_group_from_list(
    configs: Iterable[ConfigLike],
    options: Optional[FilterGroupOptions] = None,
    **kwargs: Any,
) -> FilterGroup:
    """Build a FilterGroup from an ordered list of descriptors, keyed by name."""
    return FilterGroup(build_config_map(list(configs)), options, **kwargs)
