"""Llama sidecar test configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from fixtures.fake_llama import render
from llama_sidecar.configs.settings import SidecarConfig
from llama_sidecar.llama.environment import library_name
from llama_sidecar.llama.service import LlamaService

GGUF_HEADER = b"GGUF\x03\x00\x00\x00"


# ============================================================================
# Path Fixtures
# ============================================================================


@pytest.fixture
def resources_dir(tmp_path: Path) -> Path:
    """Create the bundled-resources layout with a fake binary and library."""
    resources = tmp_path / "resources"
    (resources / "bin").mkdir(parents=True)
    (resources / "lib").mkdir()
    (resources / "models").mkdir()
    (resources / "logs").mkdir()

    binary = resources / "bin" / "llama-cli"
    binary.write_text(render(sys.executable), encoding="utf-8")
    binary.chmod(0o755)
    (resources / "lib" / library_name()).write_bytes(b"")
    return resources


@pytest.fixture
def models_dir(resources_dir: Path) -> Path:
    """Populate the models directory with two models and a stray file."""
    models = resources_dir / "models"
    (models / "tiny-llama.Q4_K_M.gguf").write_bytes(GGUF_HEADER + b"\x00" * 64)
    (models / "Broken-Model.GGUF").write_bytes(b"NOPE" + b"\x00" * 16)
    (models / "notes.txt").write_text("not a model", encoding="utf-8")
    return models


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def config(resources_dir: Path) -> SidecarConfig:
    """Config pointing at the fake resources, with short waits."""
    return SidecarConfig(
        resources_dir=resources_dir,
        probe_timeout=5.0,
        standard_watchdog=5.0,
        streaming_watchdog=5.0,
        benchmark_watchdog=5.0,
        quit_grace=0.2,
        benchmark_prompt_pause=0,
        benchmark_model_pause=0,
    )


@pytest.fixture
def service(config: SidecarConfig, models_dir: Path) -> LlamaService:
    """A service over the fake binary with no model loaded."""
    return LlamaService(config)


@pytest.fixture
def loaded_service(service: LlamaService) -> LlamaService:
    """A service with the valid test model active."""
    assert service.load_model("tiny-llama")
    return service


@pytest.fixture
def fake_mode(monkeypatch):
    """Select how the fake binary behaves for the rest of the test."""

    def set_mode(mode: str, help_kind: str = "full") -> None:
        monkeypatch.setenv("FAKE_LLAMA_MODE", mode)
        monkeypatch.setenv("FAKE_LLAMA_HELP", help_kind)

    set_mode("ok")
    return set_mode


# ============================================================================
# Stream Fixtures
# ============================================================================


@pytest.fixture
def recorder():
    """Collects ``(event, payload)`` pairs from a stream listener."""
    events: list = []

    def listener(event, payload):
        events.append((event, payload))

    listener.events = events
    return listener
