"""Process environment and shared-library lookup for the inference binary."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping

__all__ = ["library_name", "locate_library", "build_env"]


def library_name(platform: str | None = None) -> str:
    platform = platform or sys.platform
    if platform == "win32":
        return "llama.dll"
    if platform == "darwin":
        return "libllama.dylib"
    return "libllama.so"


def locate_library(lib_dir: Path, binary_path: Path, platform: str | None = None) -> Path | None:
    """
    Find the directory holding the shared library.

    The configured lib dir wins; builds that ship the library next to the
    binary are accepted too.
    """
    name = library_name(platform)
    for directory in (lib_dir, binary_path.parent):
        if (directory / name).is_file():
            return directory
    return None


def _prepend(value: str | None, directory: str, separator: str) -> str:
    return separator.join(part for part in (directory, value) if part)


def build_env(
    lib_dir: str | Path,
    base: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> dict[str, str]:
    """
    Copy ``base`` (default ``os.environ``) with ``lib_dir`` on the platform's
    library search path.
    """
    platform = platform or sys.platform
    env = dict(os.environ if base is None else base)
    directory = str(lib_dir)

    if platform == "darwin":
        env["DYLD_LIBRARY_PATH"] = _prepend(env.get("DYLD_LIBRARY_PATH"), directory, ":")
        env["DYLD_FALLBACK_LIBRARY_PATH"] = directory
    elif platform == "win32":
        env["PATH"] = _prepend(env.get("PATH"), directory, ";")
    else:
        env["LD_LIBRARY_PATH"] = _prepend(env.get("LD_LIBRARY_PATH"), directory, ":")
    return env
