"""
Group-level options and process-wide defaults.

Options travel with each FilterGroup. Defaults live in thread-local storage
so that an application (or a test) can tune every group it builds without
threading an options object through its own code.

Time values are in seconds.
"""

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Signature of the optional observability hook: (event_name, payload) -> None
EventReporter = Callable[[str, Dict[str, Any]], None]

DEFAULT_TIMEOUT = 2.0
DEFAULT_INITIAL_TIMEOUT = 2.0
DEFAULT_REACTION_DEBOUNCE = 0.15
DEFAULT_GROUP_DEBOUNCE = 0.3


@dataclass
class FilterGroupOptions:
    """Tunable windows for a filter group.

    Attributes:
        timeout: Upper bound for a single reaction call.
        initial_timeout: Upper bound for a single initial query.
        reaction_debounce: Per-field window that collapses bursts of
            dependency changes into one reaction call.
        group_debounce: Window that coalesces settled group snapshots.
        event_reporter: Optional hook receiving lifecycle events.
    """
    timeout: float = DEFAULT_TIMEOUT
    initial_timeout: float = DEFAULT_INITIAL_TIMEOUT
    reaction_debounce: float = DEFAULT_REACTION_DEBOUNCE
    group_debounce: float = DEFAULT_GROUP_DEBOUNCE
    event_reporter: Optional[EventReporter] = None

    def replace(self, **changes: Any) -> 'FilterGroupOptions':
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


_default_options_context = threading.local()


def set_default_options(options: FilterGroupOptions) -> None:
    """Set the options used by groups built without explicit options.

    Args:
        options: Options copied into every new group on this thread
    """
    _default_options_context.value = options


def get_default_options() -> FilterGroupOptions:
    """Get a copy of the current default options.

    Returns:
        The thread's defaults, or built-in defaults when none were set
    """
    options = getattr(_default_options_context, 'value', None)
    if options is None:
        return FilterGroupOptions()
    return options.replace()


def reset_default_options() -> None:
    """Drop any defaults set on this thread."""
    _default_options_context.value = None
