"""
Field descriptors: the static configuration of a filter group.

A FilterConfig describes one field. Descriptors are supplied by the user,
validated once, and never mutated at runtime.
"""

import dataclasses
from dataclasses import dataclass, field
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from filterstate.exceptions import FilterConfigError
from filterstate.state_model import FieldState

logger = logging.getLogger(__name__)

PartialState = Mapping[str, Any]
# (dependency states) -> partial state, or an awaitable of one
Reaction = Callable[[Dict[str, FieldState]], Union[PartialState, Awaitable[PartialState]]]
InitialQuery = Reaction

QUERY_MODES = ('hash', 'query')

# camelCase keys accepted by FilterConfig.from_dict
_CAMEL_ALIASES = {
    'componentProps': 'component_props',
    'queryKey': 'query_key',
    'queryMode': 'query_mode',
    'queryType': 'query_type',
    'isSaveStorage': 'is_save_storage',
    'initialValue': 'initial_value',
    'initialDependencies': 'initial_dependencies',
    'initialDependcies': 'initial_dependencies',
    'initialQuery': 'initial_query',
}


@dataclass
class FilterConfig:
    """Descriptor of a single filter field.

    ``dependencies`` and ``reaction`` are a co-required pair: a field either
    declares both (dependent field) or neither (base field).
    """
    name: str
    component: Any = None
    component_props: Dict[str, Any] = field(default_factory=dict)
    visible: bool = True
    # URL sync: only fields with a query_type are synced
    query_key: Optional[str] = None
    query_mode: str = 'hash'
    query_type: Optional[Dict[str, Any]] = None
    is_save_storage: bool = False
    # Initial state
    initial_value: Any = None
    initial_dependencies: List[str] = field(default_factory=list)
    initial_query: Optional[InitialQuery] = None
    # Live reactions
    dependencies: Optional[List[str]] = None
    reaction: Optional[Union[Reaction, List[Reaction]]] = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise FilterConfigError(f"field name must be a non-empty string, got {self.name!r}")
        if (self.dependencies is None) != (self.reaction is None):
            raise FilterConfigError(
                f"field {self.name!r} must declare 'dependencies' and 'reaction' together",
                self.name,
            )
        if self.query_mode not in QUERY_MODES:
            raise FilterConfigError(
                f"field {self.name!r} has query_mode {self.query_mode!r}, expected one of {QUERY_MODES}",
                self.name,
            )
        if self.reaction is not None:
            reactions = self.reaction if isinstance(self.reaction, list) else [self.reaction]
            if not reactions or not all(callable(r) for r in reactions):
                raise FilterConfigError(f"field {self.name!r} reaction must be callable", self.name)
        if self.initial_query is not None and not callable(self.initial_query):
            raise FilterConfigError(f"field {self.name!r} initial_query must be callable", self.name)
        self.dependencies = list(self.dependencies) if self.dependencies is not None else None
        self.initial_dependencies = list(self.initial_dependencies or [])
        self.component_props = dict(self.component_props or {})

    @property
    def is_base(self) -> bool:
        """True when the field has no live dependencies."""
        return not self.dependencies

    @property
    def reactions(self) -> List[Reaction]:
        """Reactions as an ordered list (empty for base fields)."""
        if self.reaction is None:
            return []
        if isinstance(self.reaction, list):
            return list(self.reaction)
        return [self.reaction]

    @property
    def sync_key(self) -> str:
        """Key used in the URL for this field."""
        return self.query_key or self.name

    def initial_state(self, value: Any = None) -> FieldState:
        """Build the settled FieldState a field starts from."""
        return FieldState(
            name=self.name,
            visible=self.visible,
            loading=False,
            value=value if value is not None else self.initial_value,
            component_props=dict(self.component_props),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FilterConfig':
        """Build a descriptor from a mapping with snake_case or camelCase keys."""
        kwargs = {_CAMEL_ALIASES.get(key, key): value for key, value in data.items()}
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise FilterConfigError(f"invalid descriptor {data.get('name')!r}: {e}", data.get('name')) from e


ConfigLike = Union[FilterConfig, Mapping[str, Any]]


def _coerce(config: ConfigLike) -> FilterConfig:
    if isinstance(config, FilterConfig):
        return config
    if isinstance(config, Mapping):
        return FilterConfig.from_dict(config)
    raise FilterConfigError(f"expected FilterConfig or mapping, got {type(config).__name__}")


def build_config_map(configs: Union[Mapping[str, ConfigLike], Iterable[ConfigLike]]) -> Dict[str, FilterConfig]:
    """Normalize descriptors into an ordered name -> FilterConfig map.

    Accepts either a mapping keyed by field name or an ordered list of
    descriptors (keyed by their ``name``). Declaration order is preserved.

    Args:
        configs: Mapping or iterable of FilterConfig instances or dicts

    Returns:
        Ordered dict of validated descriptors

    Raises:
        FilterConfigError: If a descriptor is invalid or a name is duplicated
    """
    config_map: Dict[str, FilterConfig] = {}
    if isinstance(configs, Mapping):
        for key, raw in configs.items():
            config = _coerce(raw)
            if config.name != key:
                logger.warning(f"Field key {key!r} differs from descriptor name {config.name!r}; using key")
                config = dataclasses.replace(config, name=key)
            config_map[key] = config
        return config_map

    for raw in configs:
        config = _coerce(raw)
        if config.name in config_map:
            raise FilterConfigError(f"duplicate field name {config.name!r}", config.name)
        config_map[config.name] = config
    return config_map
