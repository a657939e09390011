from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .base import BaseConfig

__all__ = ["SidecarConfig", "CONFIG_ENV_VAR"]

CONFIG_ENV_VAR = "LLAMA_SIDECAR_CONFIG"

_PATH_FIELDS = ("resources_dir", "binary_path", "lib_dir", "models_dir", "log_dir")


@dataclass
class SidecarConfig(BaseConfig):
    """
    Sidecar settings.

    Paths left unset are derived from ``resources_dir``, which mirrors the
    layout the desktop host bundles: ``bin/llama-cli``, ``lib``, ``models``
    and ``logs``.
    """

    resources_dir: Path | None = None
    binary_path: Path | None = None
    lib_dir: Path | None = None
    models_dir: Path | None = None
    log_dir: Path | None = None
    log_level: str = "INFO"

    # Seconds
    probe_timeout: float = 15.0
    standard_watchdog: float = 10.0
    streaming_watchdog: float = 10.0
    benchmark_watchdog: float = 20.0
    quit_grace: float = 1.0
    # False keeps the child's stdin open so the watchdog can send the quit
    # keystroke before interrupting it.
    close_stdin: bool = True
    benchmark_prompt_pause: float = 1.0
    benchmark_model_pause: float = 5.0

    # Streaming queries run with a smaller context and token budget
    stream_context_cap: int | None = 512
    stream_max_tokens_cap: int | None = 100

    chunk_size: int = 4096

    def __post_init__(self) -> None:
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, Path(value).expanduser())

        if self.resources_dir is None:
            self.resources_dir = Path.home() / ".llama-sidecar"
        if self.binary_path is None:
            binary_name = "llama-cli.exe" if sys.platform == "win32" else "llama-cli"
            self.binary_path = self.resources_dir / "bin" / binary_name
        if self.lib_dir is None:
            self.lib_dir = self.resources_dir / "lib"
        if self.models_dir is None:
            self.models_dir = self.resources_dir / "models"
        if self.log_dir is None:
            self.log_dir = self.resources_dir / "logs"

    @classmethod
    def load(cls, path: str | Path | None = None) -> "SidecarConfig":
        """Load from ``path``, else from ``$LLAMA_SIDECAR_CONFIG``, else defaults."""
        path = path or os.environ.get(CONFIG_ENV_VAR)
        if path:
            return cls.from_yaml(path)
        return cls()

    def ensure_directories(self) -> None:
        for directory in (self.lib_dir, self.models_dir, self.log_dir, self.binary_path.parent):
            directory.mkdir(parents=True, exist_ok=True)
