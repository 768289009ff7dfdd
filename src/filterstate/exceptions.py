"""
Exception hierarchy for filterstate.

Configuration problems are raised eagerly while a group is being built.
Runtime failures (reaction timeouts, rejected initial queries, bad URL
values) are recovered per field and only logged, so the classes below that
describe them are used internally and never escape the engine.
"""

from typing import List, Optional


class FilterStateError(Exception):
    """Base exception for filterstate errors."""

    pass


class FilterConfigError(FilterStateError):
    """Raised when a field descriptor or group configuration is invalid."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        self.message = message
        self.field_name = field_name
        self.error_code = "filter_config_error"
        super().__init__(message)


class CycleDetectedError(FilterConfigError):
    """Raised when field dependencies form a cycle."""

    def __init__(self, cycle: List[str], kind: str = "dependencies") -> None:
        self.cycle = cycle
        self.kind = kind
        super().__init__(f"cycle detected in {kind}: {' -> '.join(cycle)}", cycle[0] if cycle else None)
        self.error_code = "cycle_detected"


class UnsupportedQueryTypeError(FilterConfigError):
    """Raised when a query type schema declares an unknown kind."""

    def __init__(self, type_name: object, field_name: Optional[str] = None) -> None:
        self.type_name = type_name
        super().__init__(f"QueryError: Unsupported type: {type_name!r}", field_name)
        self.error_code = "unsupported_query_type"


class QueryValidationError(FilterStateError):
    """Raised when a stored URL value does not match its schema."""

    def __init__(self, key: str, raw_value: object, reason: str) -> None:
        self.key = key
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"QueryError: {key}={raw_value!r}: {reason}")
