"""Tests for the URL state collaborator."""
import pytest

from filterstate import (
    FilterConfig,
    MemoryLocation,
    UnsupportedQueryTypeError,
    UrlStateGroup,
    parse_schema,
)


def _group(location, *configs):
    url_state = UrlStateGroup(location)
    url_state.init(configs)
    return url_state


class TestParseSchema:
    """Schema descriptions -> pydantic types."""

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedQueryTypeError) as exc:
            parse_schema({"type": "date"}, "when")
        assert exc.value.field_name == "when"

    def test_nested_unsupported_type(self):
        with pytest.raises(UnsupportedQueryTypeError):
            parse_schema({"type": "array", "items": {"type": "set"}})

    def test_unsupported_type_fails_registration(self, location):
        url_state = UrlStateGroup(location)
        with pytest.raises(UnsupportedQueryTypeError):
            url_state.init([FilterConfig(name="x", query_type={"type": "tuple"})])


class TestRoundTrip:
    """Values written by set_query_values read back with their types."""

    def test_number_round_trip(self, location):
        url_state = _group(location, FilterConfig(name="size", query_type={"type": "number"}))
        url_state.set_query_values({"size": 42})

        value = url_state.get_query_value("size")
        assert value == 42
        assert isinstance(value, int)
        assert not isinstance(value, bool)

    def test_float_round_trip(self, location):
        url_state = _group(location, FilterConfig(name="ratio", query_type={"type": "number"}))
        url_state.set_query_values({"ratio": 0.5})
        assert url_state.get_query_value("ratio") == 0.5

    def test_string_written_raw(self, location):
        url_state = _group(
            location, FilterConfig(name="city", query_type={"type": "string"}, query_mode="query")
        )
        url_state.set_query_values({"city": "paris"})
        assert location.search == "?city=paris"
        assert url_state.get_query_value("city") == "paris"

    def test_numeric_looking_string_stays_string(self, location):
        url_state = _group(location, FilterConfig(name="code", query_type={"type": "string"}))
        url_state.set_query_values({"code": "42"})
        assert url_state.get_query_value("code") == "42"

    def test_json_literal_strings_stay_strings(self, location):
        url_state = _group(
            location,
            FilterConfig(name="s", query_type={"type": "string", "nullable": True}),
            FilterConfig(name="t", query_type={"type": "string"}),
        )
        url_state.set_query_values({"s": "null", "t": "true"})
        assert url_state.get_query_value("s") == "null"
        assert url_state.get_query_value("t") == "true"

    def test_hand_written_numeric_string_read_raw(self):
        location = MemoryLocation.from_url("/list?code=42")
        url_state = _group(location, FilterConfig(name="code", query_type={"type": "string"}, query_mode="query"))
        assert url_state.get_query_value("code") == "42"

    def test_boolean_round_trip(self, location):
        url_state = _group(location, FilterConfig(name="flag", query_type={"type": "boolean"}))
        url_state.set_query_values({"flag": False})
        assert url_state.get_query_value("flag") is False

    def test_array_and_object_round_trip(self, location):
        url_state = _group(
            location,
            FilterConfig(name="tags", query_type={"type": "array", "items": {"type": "string"}}),
            FilterConfig(
                name="range",
                query_type={
                    "type": "object",
                    "properties": {
                        "low": {"type": "number"},
                        "high": {"type": "number", "optional": True},
                    },
                },
            ),
        )
        url_state.set_query_values({"tags": ["a", "b"], "range": {"low": 1}})

        assert url_state.get_query_value("tags") == ["a", "b"]
        assert url_state.get_query_value("range") == {"low": 1, "high": None}


class TestModes:
    """Hash and query modes read and write their own part of the URL."""

    def test_default_mode_is_hash(self, location):
        url_state = _group(location, FilterConfig(name="page", query_type={"type": "number"}))
        url_state.set_query_values({"page": 3})
        assert location.hash == "#page=3"
        assert location.search == ""

    def test_modes_partitioned(self, location):
        url_state = _group(
            location,
            FilterConfig(name="page", query_type={"type": "number"}, query_mode="query"),
            FilterConfig(name="tab", query_type={"type": "string"}, query_mode="hash"),
        )
        url_state.set_query_values({"page": 2, "tab": "main"})
        assert location.search == "?page=2"
        assert location.hash == "#tab=main"
        assert location.history == ["/search?page=2#tab=main"]

    def test_reads_from_matching_part(self):
        location = MemoryLocation.from_url("/list?page=7#page=9")
        url_state = _group(location, FilterConfig(name="page", query_type={"type": "number"}, query_mode="query"))
        assert url_state.get_query_value("page") == 7

    def test_query_key_used_in_url(self, location):
        url_state = _group(
            location, FilterConfig(name="city", query_key="c", query_type={"type": "string"}, query_mode="query")
        )
        url_state.set_query_values({"city": "rome"})
        assert location.search == "?c=rome"
        assert url_state.get_query_value("city") == "rome"

    def test_existing_params_preserved_and_none_removed(self):
        location = MemoryLocation.from_url("/list?other=1&page=2")
        url_state = _group(location, FilterConfig(name="page", query_type={"type": "number"}, query_mode="query"))
        url_state.set_query_values({"page": None})
        assert location.search == "?other=1"

    def test_unsynced_fields_ignored(self, location):
        url_state = _group(location, FilterConfig(name="page", query_type={"type": "number"}))
        url_state.set_query_values({"secret": "x"})
        assert location.history == []
        assert url_state.get_query_value("secret") is None
        assert not url_state.is_synced("secret")


class TestValidation:
    """Invalid URL values are treated as absent."""

    def test_invalid_value_returns_none_and_logs(self, caplog):
        location = MemoryLocation.from_url("/list#size=big")
        url_state = _group(location, FilterConfig(name="size", query_type={"type": "number"}))
        assert url_state.get_query_value("size") is None
        assert "QueryError" in caplog.text

    def test_absent_key_returns_none_quietly(self, location, caplog):
        url_state = _group(location, FilterConfig(name="size", query_type={"type": "number"}))
        assert url_state.get_query_value("size") is None
        assert caplog.text == ""

    def test_nullable(self):
        location = MemoryLocation.from_url("/list#size=null")
        url_state = _group(location, FilterConfig(name="size", query_type={"type": "number", "nullable": True}))
        assert url_state.get_query_value("size") is None


def test_current_path(location):
    assert UrlStateGroup(location).current_path == "/search"
