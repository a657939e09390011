"""
Capability probe for the inference binary.

Different llama.cpp builds expose different flag sets, so the binary's help
output is scanned for the optional flags the command builder knows about.
Detection is a plain substring search and therefore best-effort.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Mapping

from llama_sidecar.exceptions import ProbeError

logger = logging.getLogger(__name__)

__all__ = [
    "TOP_P",
    "NO_DISPLAY_PROMPT",
    "NO_MMAP",
    "NO_INTERACTIVE",
    "NO_CONVERSATION",
    "NO_CONVERSATION_LEGACY",
    "capabilities_from_help",
    "probe",
]

TOP_P = "--top-p"
NO_DISPLAY_PROMPT = "--no-display-prompt"
NO_MMAP = "--no-mmap"
NO_INTERACTIVE = "--no-interactive"
NO_CONVERSATION = "--no-cnv"
NO_CONVERSATION_LEGACY = "-no-cnv"

_SIMPLE_FLAGS = (TOP_P, NO_DISPLAY_PROMPT, NO_MMAP, NO_INTERACTIVE)


def capabilities_from_help(help_text: str) -> frozenset[str]:
    """Return the optional flags mentioned in ``help_text``."""
    found = {flag for flag in _SIMPLE_FLAGS if flag in help_text}
    # "-no-cnv" is a substring of "--no-cnv"; prefer the long form.
    if NO_CONVERSATION in help_text:
        found.add(NO_CONVERSATION)
    elif NO_CONVERSATION_LEGACY in help_text:
        found.add(NO_CONVERSATION_LEGACY)
    return frozenset(found)


def probe(
    binary_path: str | Path,
    env: Mapping[str, str] | None = None,
    cwd: str | Path | None = None,
    timeout: float = 15.0,
) -> frozenset[str]:
    """
    Run ``<binary> -h`` and detect which optional flags it supports.
    Args:
        binary_path: Path to the inference binary.
        env: Environment for the help invocation.
        cwd: Working directory for the help invocation.
        timeout: Seconds to wait for the help output.
    Returns:
        The set of supported optional flag tokens.
    Raises:
        ProbeError: If the binary cannot be run or exits non-zero.
    """
    try:
        completed = subprocess.run(
            [str(binary_path), "-h"],
            env=dict(env) if env is not None else None,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ProbeError(f"Could not run {binary_path} -h: {e}") from e

    if completed.returncode != 0:
        raise ProbeError(
            f"{binary_path} -h exited with code {completed.returncode}"
        )

    help_text = (completed.stdout + completed.stderr).decode("utf-8", errors="replace")
    capabilities = capabilities_from_help(help_text)
    logger.debug("Detected capabilities: %s", sorted(capabilities))
    return capabilities
