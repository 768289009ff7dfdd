"""
URL state collaborator.

Maps field values to and from the query string or the hash fragment of a
location, validating what it reads against a typed schema. The location is
injected so the engine never touches ambient browser or process state.

Schema descriptions are small dicts::

    {'type': 'number', 'optional': True, 'nullable': False}
    {'type': 'array', 'items': {'type': 'string'}}
    {'type': 'object', 'properties': {'lat': {'type': 'number'}}}

Each description is turned into a pydantic type and validated in strict
mode, so ``"42"`` is not accepted where a number is declared. Values are
JSON encoded inside the URL (strings are written raw) so typed values
survive the round trip.
"""

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    create_model,
)

from filterstate.descriptors import FilterConfig
from filterstate.exceptions import QueryValidationError, UnsupportedQueryTypeError

logger = logging.getLogger(__name__)

_PRIMITIVES = {
    'number': Union[StrictInt, StrictFloat],
    'string': StrictStr,
    'boolean': StrictBool,
}


def _wrap_optional(annotation: Any, description: Mapping[str, Any]) -> Any:
    if description.get('nullable') or description.get('optional'):
        return Optional[annotation]
    return annotation


def parse_schema(description: Mapping[str, Any], field_name: Optional[str] = None) -> Any:
    """Convert a query type description into a pydantic-compatible type.

    Args:
        description: Schema description dict
        field_name: Owning field (for error messages)

    Returns:
        Type annotation usable with TypeAdapter

    Raises:
        UnsupportedQueryTypeError: If ``type`` is not a supported kind
    """
    if not isinstance(description, Mapping):
        raise UnsupportedQueryTypeError(description, field_name)
    type_name = description.get('type')

    if type_name in _PRIMITIVES:
        return _wrap_optional(_PRIMITIVES[type_name], description)

    if type_name == 'array':
        items = description.get('items')
        if items is None:
            raise UnsupportedQueryTypeError('array without items', field_name)
        return List[parse_schema(items, field_name)]

    if type_name == 'object':
        fields: Dict[str, Tuple[Any, Any]] = {}
        for prop_name, prop_description in (description.get('properties') or {}).items():
            prop_type = parse_schema(prop_description, field_name)
            default = None if prop_description.get('optional') else ...
            fields[prop_name] = (prop_type, default)
        model = create_model(
            f"{field_name or 'Query'}Value",
            __config__=ConfigDict(strict=True, extra='ignore'),
            **fields,
        )
        return _wrap_optional(model, description)

    raise UnsupportedQueryTypeError(type_name, field_name)


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


class Location(Protocol):
    """What the URL collaborator needs from a location.

    ``search`` keeps its leading ``?`` and ``hash`` its leading ``#``, as in
    a browser.
    """
    pathname: str
    search: str
    hash: str

    def replace_state(self, search: str, hash: str) -> None: ...


@dataclass
class MemoryLocation:
    """Headless location; records every URL it was replaced with."""
    pathname: str = '/'
    search: str = ''
    hash: str = ''
    history: List[str] = field(default_factory=list)

    @classmethod
    def from_url(cls, url: str) -> 'MemoryLocation':
        parts = urlsplit(url)
        return cls(
            pathname=parts.path or '/',
            search=f"?{parts.query}" if parts.query else '',
            hash=f"#{parts.fragment}" if parts.fragment else '',
        )

    @property
    def href(self) -> str:
        return f"{self.pathname}{self.search}{self.hash}"

    def replace_state(self, search: str, hash: str) -> None:
        self.search = search
        self.hash = hash
        self.history.append(self.href)


@dataclass
class QueryItem:
    """Sync registration of one field."""
    name: str
    key: str
    mode: str
    type: Mapping[str, Any]
    adapter: TypeAdapter


def _parse_params(raw: str) -> Dict[str, str]:
    return dict(parse_qsl(raw, keep_blank_values=True))


def _encode(value: Any) -> str:
    # plain strings go raw; ones that parse as JSON are quoted so they read back as strings
    if isinstance(value, str):
        try:
            json.loads(value)
        except ValueError:
            return value
    return json.dumps(value, separators=(',', ':'))


def _candidates(raw: str) -> List[Any]:
    try:
        decoded = json.loads(raw)
    except ValueError:
        return [raw]
    return [decoded, raw] if decoded != raw else [decoded]


class UrlStateGroup:
    """Typed read/write of field values kept in a location's URL."""

    def __init__(self, location: Optional[Location] = None):
        self.location = location if location is not None else MemoryLocation()
        self._items: Dict[str, QueryItem] = {}

    @property
    def current_path(self) -> str:
        return self.location.pathname

    def init(self, configs: Iterable[FilterConfig]) -> None:
        """Register which fields sync, how, and with what schema.

        Raises:
            UnsupportedQueryTypeError: If a field declares an unknown schema kind
        """
        items: Dict[str, QueryItem] = {}
        for config in configs:
            if not config.query_type:
                continue
            annotation = parse_schema(config.query_type, config.name)
            items[config.name] = QueryItem(
                name=config.name,
                key=config.sync_key,
                mode=config.query_mode or 'hash',
                type=config.query_type,
                adapter=TypeAdapter(annotation),
            )
        self._items = items
        logger.debug(f"URL sync registered for fields: {list(items)}")

    def is_synced(self, name: str) -> bool:
        return name in self._items

    def _params(self, mode: str) -> Dict[str, str]:
        if mode == 'query':
            return _parse_params(self.location.search.lstrip('?'))
        return _parse_params(self.location.hash.lstrip('#'))

    def _validate(self, item: QueryItem, raw: str) -> Any:
        error: Optional[ValidationError] = None
        for candidate in _candidates(raw):
            try:
                return _to_plain(item.adapter.validate_python(candidate))
            except ValidationError as e:
                error = error or e
        raise QueryValidationError(item.key, raw, str(error))

    def get_query_value(self, name: str) -> Any:
        """Read and validate a field's value from the URL.

        Returns:
            The typed value, or None when the field is not synced, the key
            is absent, or the stored value fails validation
        """
        item = self._items.get(name)
        if item is None:
            return None
        raw = self._params(item.mode).get(item.key)
        if raw is None:
            return None
        try:
            return self._validate(item, raw)
        except QueryValidationError as e:
            logger.error(f"QueryError: {name}: {e.reason}")
            return None

    def set_query_values(self, values: Mapping[str, Any]) -> None:
        """Write the synced subset of ``{field_name: value}`` to the URL.

        Values are partitioned by sync mode; keys set to None are removed.
        Unsynced fields are ignored.
        """
        updates: Dict[str, Dict[str, Any]] = {'query': {}, 'hash': {}}
        for name, value in values.items():
            item = self._items.get(name)
            if item is not None:
                updates[item.mode][item.key] = value
        if not updates['query'] and not updates['hash']:
            return

        search = self.location.search
        hash_ = self.location.hash
        if updates['query']:
            search = self._merge(self._params('query'), updates['query'], '?')
        if updates['hash']:
            hash_ = self._merge(self._params('hash'), updates['hash'], '#')
        self.location.replace_state(search, hash_)

    @staticmethod
    def _merge(current: Dict[str, str], updates: Mapping[str, Any], prefix: str) -> str:
        for key, value in updates.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = _encode(value)
        encoded = urlencode(current)
        return f"{prefix}{encoded}" if encoded else ''
