"""
Reactive state engine for interdependent filter fields.

This package manages a group of filter fields (form or query controls):
each field has a value, a visibility flag, a loading flag and component
parameters. Fields may depend on other fields and recompute their own state
through a synchronous or asynchronous reaction whenever a dependency
changes.

Key Features:
- Initial snapshot resolved from URL state, persisted storage or an async
  initial query, in dependency order
- Live recomputation with loading propagation, per-field debounce,
  per-reaction timeout and fallback
- Quiescent, deduplicated, debounced group streams
- Typed URL sync (pydantic-validated) and persisted storage write-back

Quick Start:
    >>> from filterstate import FilterConfig, create_filter_group_from_list
    >>>
    >>> group = create_filter_group_from_list([
    ...     FilterConfig(name='city', initial_value='paris'),
    ...     FilterConfig(
    ...         name='district',
    ...         dependencies=['city'],
    ...         reaction=lambda deps: {'value': deps['city'].value + '-1'},
    ...     ),
    ... ])
    >>> states = await group.init()
    >>> group.set_field_state('city', {'value': 'lyon'})
    >>> group.filter_group_value_stream.subscribe(print)

Modules:
    - state_model: FieldState and partial-state merging
    - descriptors: FilterConfig descriptors
    - graph: Dependency graph validation
    - initial: Initial snapshot resolution
    - node: Observable per-field nodes
    - pipeline: Per-field reaction pipeline
    - aggregator: Group streams
    - query: URL state collaborator
    - storage: Persisted storage collaborators
    - config: Group options and defaults
"""

# State model
from filterstate.state_model import FieldState, merge_field_state

# Descriptors
from filterstate.descriptors import FilterConfig, build_config_map

# Exceptions
from filterstate.exceptions import (
    FilterStateError,
    FilterConfigError,
    CycleDetectedError,
    UnsupportedQueryTypeError,
    QueryValidationError,
)

# Configuration
from filterstate.config import (
    FilterGroupOptions,
    set_default_options,
    get_default_options,
    reset_default_options,
)

# Engine
from filterstate.node import FieldNode, Subscription
from filterstate.aggregator import GroupStream
from filterstate.initial import InitialResolver
from filterstate.group import (
    FilterGroup,
    create_filter_group,
    create_filter_group_from_list,
    EVENT_INITIALIZED,
    EVENT_STATE_CHANGE,
    EVENT_VALUES_CHANGE,
)

# Collaborators
from filterstate.query import UrlStateGroup, MemoryLocation, parse_schema
from filterstate.storage import MemoryStorage, JsonFileStorage

__all__ = [
    # State model
    'FieldState',
    'merge_field_state',
    # Descriptors
    'FilterConfig',
    'build_config_map',
    # Exceptions
    'FilterStateError',
    'FilterConfigError',
    'CycleDetectedError',
    'UnsupportedQueryTypeError',
    'QueryValidationError',
    # Configuration
    'FilterGroupOptions',
    'set_default_options',
    'get_default_options',
    'reset_default_options',
    # Engine
    'FieldNode',
    'Subscription',
    'GroupStream',
    'InitialResolver',
    'FilterGroup',
    'create_filter_group',
    'create_filter_group_from_list',
    'EVENT_INITIALIZED',
    'EVENT_STATE_CHANGE',
    'EVENT_VALUES_CHANGE',
    # Collaborators
    'UrlStateGroup',
    'MemoryLocation',
    'parse_schema',
    'MemoryStorage',
    'JsonFileStorage',
]

__version__ = '1.0.0'
__description__ = 'Reactive state engine for interdependent filter fields'
