"""Tests for FilterConfig descriptors and config maps."""
import pytest

from filterstate import FilterConfig, FilterConfigError, build_config_map


def _reaction(deps):
    return {}


class TestFilterConfig:
    """Validation of a single descriptor."""

    def test_base_field(self):
        config = FilterConfig(name="city", initial_value="paris")
        assert config.is_base
        assert config.reactions == []
        assert config.sync_key == "city"

    def test_dependencies_require_reaction(self):
        with pytest.raises(FilterConfigError) as exc:
            FilterConfig(name="district", dependencies=["city"])
        assert exc.value.field_name == "district"

    def test_reaction_requires_dependencies(self):
        with pytest.raises(FilterConfigError):
            FilterConfig(name="district", reaction=_reaction)

    def test_reaction_list(self):
        second = lambda deps: {"value": 2}
        config = FilterConfig(name="d", dependencies=["c"], reaction=[_reaction, second])
        assert config.reactions == [_reaction, second]
        assert not config.is_base

    def test_reaction_must_be_callable(self):
        with pytest.raises(FilterConfigError):
            FilterConfig(name="d", dependencies=["c"], reaction=["nope"])

    def test_invalid_query_mode(self):
        with pytest.raises(FilterConfigError):
            FilterConfig(name="c", query_mode="cookie")

    def test_query_key_overrides_sync_key(self):
        assert FilterConfig(name="city", query_key="c").sync_key == "c"

    def test_initial_state_prefers_restored_value(self):
        config = FilterConfig(name="n", initial_value=1, visible=False, component_props={"min": 0})
        assert config.initial_state().value == 1
        assert config.initial_state(0).value == 0
        state = config.initial_state(5)
        assert state.visible is False
        assert state.component_props == {"min": 0}
        assert state.component_props is not config.component_props

    def test_from_dict_accepts_camel_case(self):
        config = FilterConfig.from_dict({
            "name": "city",
            "componentProps": {"placeholder": "City"},
            "queryType": {"type": "string"},
            "queryMode": "query",
            "isSaveStorage": True,
            "initialValue": "paris",
            "initialDependcies": ["country"],
        })
        assert config.component_props == {"placeholder": "City"}
        assert config.query_type == {"type": "string"}
        assert config.query_mode == "query"
        assert config.is_save_storage is True
        assert config.initial_value == "paris"
        assert config.initial_dependencies == ["country"]

    def test_from_dict_unknown_key(self):
        with pytest.raises(FilterConfigError):
            FilterConfig.from_dict({"name": "city", "colour": "red"})


class TestBuildConfigMap:
    """Normalizing descriptor collections."""

    def test_list_preserves_order(self):
        config_map = build_config_map([FilterConfig(name="b"), {"name": "a"}, FilterConfig(name="c")])
        assert list(config_map) == ["b", "a", "c"]
        assert isinstance(config_map["a"], FilterConfig)

    def test_list_rejects_duplicates(self):
        with pytest.raises(FilterConfigError):
            build_config_map([FilterConfig(name="a"), FilterConfig(name="a")])

    def test_mapping_key_wins_without_mutating_descriptor(self, caplog):
        original = FilterConfig(name="wrong")
        config_map = build_config_map({"right": original})
        assert config_map["right"].name == "right"
        assert original.name == "wrong"
        assert "differs" in caplog.text
