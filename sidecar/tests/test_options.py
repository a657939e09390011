import pytest

from llama_sidecar.configs.options import DEFAULT_OPTIONS, ModelOptions
from llama_sidecar.exceptions import InvalidOptionsError


def test_default_options():
    """Test the documented generation defaults."""
    assert DEFAULT_OPTIONS.temperature == 0.7
    assert DEFAULT_OPTIONS.top_p == 0.9
    assert DEFAULT_OPTIONS.max_tokens == 500
    assert DEFAULT_OPTIONS.seed == 42
    assert DEFAULT_OPTIONS.context_size == 2048
    assert DEFAULT_OPTIONS.streaming is False


def test_merged_without_overrides_returns_defaults():
    assert ModelOptions.merged() == DEFAULT_OPTIONS
    assert ModelOptions.merged({}) == DEFAULT_OPTIONS


def test_merged_accepts_host_names():
    """Test camelCase keys from the host are mapped onto fields."""
    options = ModelOptions.merged({"maxTokens": 64, "topP": 0.5, "contextSize": 1024})

    assert options.max_tokens == 64
    assert options.top_p == 0.5
    assert options.context_size == 1024
    assert options.temperature == 0.7


def test_merged_ignores_none_and_unknown_keys():
    options = ModelOptions.merged({"temperature": None, "bogus": 1, "seed": 7})

    assert options.temperature == 0.7
    assert options.seed == 7
    assert not hasattr(options, "bogus")


def test_merged_coerces_types():
    options = ModelOptions.merged({"max_tokens": "12", "temperature": 1, "streaming": 1})

    assert options.max_tokens == 12
    assert isinstance(options.temperature, float)
    assert options.streaming is True


def test_merged_over_custom_base():
    base = ModelOptions(max_tokens=300)
    options = ModelOptions.merged({"seed": 1}, base=base)

    assert options.max_tokens == 300
    assert options.seed == 1


def test_capped_only_lowers_values():
    options = ModelOptions(context_size=4096, max_tokens=50)
    capped = options.capped(context_size=512, max_tokens=100)

    assert capped.context_size == 512
    assert capped.max_tokens == 50


def test_capped_with_no_caps_is_unchanged():
    assert DEFAULT_OPTIONS.capped(None, None) == DEFAULT_OPTIONS


def test_options_are_immutable():
    with pytest.raises(AttributeError):
        DEFAULT_OPTIONS.seed = 1


def test_to_dict_uses_host_names():
    data = ModelOptions(max_tokens=10).to_dict()

    assert data["maxTokens"] == 10
    assert data["topP"] == 0.9
    assert data["contextSize"] == 2048


def test_merged_rejects_unconvertible_values():
    with pytest.raises(InvalidOptionsError, match="Invalid model options"):
        ModelOptions.merged({"temperature": "hot"})


def test_merged_rejects_non_mapping():
    with pytest.raises(InvalidOptionsError):
        ModelOptions.merged(["temperature", 1])
