"""Argument vector construction for the inference binary."""
from __future__ import annotations

from collections.abc import Collection
from pathlib import Path

import psutil

from llama_sidecar.configs.options import ModelOptions
from .probe import (
    NO_CONVERSATION,
    NO_CONVERSATION_LEGACY,
    NO_DISPLAY_PROMPT,
    NO_INTERACTIVE,
    NO_MMAP,
    TOP_P,
)

__all__ = ["available_cores", "thread_count", "build_args"]

# Boolean flags appended in this order when the binary supports them.
_SWITCHES = (NO_DISPLAY_PROMPT, NO_MMAP, NO_INTERACTIVE, NO_CONVERSATION, NO_CONVERSATION_LEGACY)


def available_cores() -> int:
    return psutil.cpu_count(logical=True) or 1


def thread_count(cores: int) -> int:
    """Leave one core for the host process."""
    return max(1, cores - 1)


def build_args(
    model_path: str | Path,
    prompt: str,
    options: ModelOptions,
    capabilities: Collection[str] = frozenset(),
    cores: int | None = None,
) -> list[str]:
    """
    Build the command-line arguments for one inference run.

    The generation parameters are always present. Capability-gated
    refinements are appended only when listed in ``capabilities``.
    """
    if cores is None:
        cores = available_cores()

    args = [
        "-m", str(model_path),
        "-p", prompt,
        "--temp", str(options.temperature),
        "--seed", str(options.seed),
        "--ctx-size", str(options.context_size),
        "--n-predict", str(options.max_tokens),
        "--threads", str(thread_count(cores)),
    ]

    if TOP_P in capabilities:
        args.extend([TOP_P, str(options.top_p)])

    for switch in _SWITCHES:
        if switch == NO_CONVERSATION_LEGACY and NO_CONVERSATION in capabilities:
            continue
        if switch in capabilities:
            args.append(switch)

    return args
