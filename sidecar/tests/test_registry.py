from pathlib import Path

import pytest

from llama_sidecar.exceptions import NoMatchError
from llama_sidecar.models.registry import (
    ModelRegistry,
    detect_quantization,
    format_size,
)


@pytest.fixture
def registry(models_dir: Path) -> ModelRegistry:
    return ModelRegistry(models_dir)


def test_format_size():
    assert format_size(512) == "512 B"
    assert format_size(1536) == "1.5 KB"
    assert format_size(5 * 1024 * 1024) == "5.0 MB"
    assert format_size(int(3.8 * 1024 ** 3)) == "3.8 GB"


def test_detect_quantization():
    assert detect_quantization("llama-3.2-1b-instruct-q4_k_m.gguf") == "Q4_K_M"
    assert detect_quantization("phi-2.Q8_0.gguf") == "Q8_0"
    assert detect_quantization("model-f16.gguf") == "F16"
    assert detect_quantization("model.gguf") == "Unknown"


def test_list_models_filters_extension(registry, models_dir):
    """Test that only .gguf files are listed, matched case-insensitively."""
    models = registry.list_models()

    assert sorted(Path(m).name for m in models) == ["Broken-Model.GGUF", "tiny-llama.Q4_K_M.gguf"]
    assert all(Path(m).is_absolute() for m in models)


def test_list_models_missing_directory(tmp_path):
    registry = ModelRegistry(tmp_path / "nowhere")

    assert registry.list_models() == []
    assert registry.has_models() is False


def test_has_models(registry):
    assert registry.has_models() is True


def test_describe_models_reports_invalid_files(registry):
    info = {model.name: model for model in registry.describe_models()}

    valid = info["tiny-llama.Q4_K_M.gguf"]
    assert valid.is_valid is True
    assert valid.model_type == "GGUF"
    assert valid.quantization == "Q4_K_M"
    assert valid.size == 72
    assert valid.formatted_size == "72 B"

    broken = info["Broken-Model.GGUF"]
    assert broken.is_valid is False
    assert broken.model_type == "Unknown"


def test_model_info_to_dict(registry):
    data = registry.describe_models()[0].to_dict()

    assert set(data) == {
        "name", "path", "size", "formattedSize", "lastModified",
        "isValid", "modelType", "quantization",
    }


def test_resolve_by_substring_is_case_insensitive(registry, models_dir):
    assert registry.resolve("TINY") == (models_dir / "tiny-llama.Q4_K_M.gguf").resolve()


def test_resolve_by_full_path(registry, models_dir):
    path = models_dir / "Broken-Model.GGUF"

    assert registry.resolve(str(path)) == path.resolve()


def test_resolve_no_match(registry):
    with pytest.raises(NoMatchError):
        registry.resolve("mistral")


def test_resolve_empty_name(registry):
    with pytest.raises(NoMatchError):
        registry.resolve("")


def test_load_and_unload_model(registry):
    assert registry.active_model is None
    assert registry.load_model("tiny") is True
    assert registry.active_model.name == "tiny-llama.Q4_K_M.gguf"

    assert registry.unload_model() is True
    assert registry.active_model is None
    assert registry.unload_model() is False


def test_failed_load_keeps_previous_model(registry):
    registry.load_model("tiny")

    assert registry.load_model("does-not-exist") is False
    assert registry.active_model.name == "tiny-llama.Q4_K_M.gguf"
