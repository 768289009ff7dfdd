"""
FieldState dataclass and partial-state merging.

FieldState is the only runtime value that flows through a filter group.
Instances are immutable: every change produces a new FieldState, so
subscribers can compare successive states structurally.

Design Philosophy:
- Immutable states (frozen dataclass)
- Structural equality (dataclass __eq__, dict comparison for props)
- Partial updates are plain mappings, merged in one place
"""

import dataclasses
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Keys a reaction, initial query or external caller may set
PARTIAL_STATE_KEYS = ('value', 'visible', 'loading', 'component_props')


@dataclass(frozen=True)
class FieldState:
    """Immutable state of a single filter field at a point in time."""
    name: str
    visible: bool = True
    loading: bool = False
    value: Any = None
    component_props: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Export to a plain dict."""
        return {
            'name': self.name,
            'visible': self.visible,
            'loading': self.loading,
            'value': self.value,
            'component_props': dict(self.component_props),
        }

    def with_loading(self, loading: bool) -> 'FieldState':
        """Return a copy with only the loading flag changed."""
        if self.loading == loading:
            return self
        return dataclasses.replace(self, loading=loading)


def normalize_partial(partial: Optional[Mapping[str, Any]], field_name: str = '') -> Dict[str, Any]:
    """Reduce a partial update to the keys a FieldState understands.

    ``componentProps`` is accepted as an alias of ``component_props``.
    Unknown keys are dropped with a warning. A ``None`` partial is an empty update.

    Args:
        partial: Mapping returned by a reaction, query or caller
        field_name: Field the update targets (for log messages)

    Returns:
        New dict containing only supported keys
    """
    if partial is None:
        return {}
    if isinstance(partial, FieldState):
        partial = partial.to_dict()
    if not isinstance(partial, Mapping):
        raise TypeError(f"partial state for {field_name!r} must be a mapping, got {type(partial).__name__}")

    normalized: Dict[str, Any] = {}
    for key, value in partial.items():
        if key == 'componentProps':
            key = 'component_props'
        if key == 'name':
            continue
        if key not in PARTIAL_STATE_KEYS:
            logger.warning(f"Ignoring unknown state key {key!r} for field {field_name!r}")
            continue
        normalized[key] = value
    return normalized


def merge_field_state(
    current: FieldState,
    partial: Optional[Mapping[str, Any]],
    loading: Optional[bool] = None,
) -> FieldState:
    """Shallow-merge a partial update onto a state.

    ``component_props`` is merged key-wise: new keys overwrite, keys absent
    from the update are retained.

    Args:
        current: State the update lands on
        partial: Partial update (may be None)
        loading: When given, forces the resulting loading flag

    Returns:
        Merged FieldState
    """
    changes = normalize_partial(partial, current.name)
    props = changes.pop('component_props', None)
    merged_props = dict(current.component_props or {})
    if props:
        merged_props.update(props)
    changes['component_props'] = merged_props
    if loading is not None:
        changes['loading'] = loading
    return dataclasses.replace(current, **changes)
