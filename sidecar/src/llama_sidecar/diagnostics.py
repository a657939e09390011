"""
Logging setup and the uncaught-exception log.

All log output goes to stderr so stdout stays clean for NDJSON, plus a log
file under the configured log directory.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from types import TracebackType

from llama_sidecar.configs.settings import SidecarConfig

logger = logging.getLogger(__name__)

__all__ = ["configure_logging", "record_uncaught", "install_exception_hooks"]

UNCAUGHT_LOG_NAME = "uncaught-exceptions.log"


def configure_logging(config: SidecarConfig, prefix: str = "llama-sidecar") -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_dir / f"{prefix}.log", encoding="utf-8"))
    except OSError as e:
        print(f"[{prefix}] Log file unavailable: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=f"[{prefix}] %(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def record_uncaught(
    log_dir: Path,
    exc_type: type[BaseException],
    exc: BaseException,
    tb: TracebackType | None,
) -> None:
    """Append an exception with timestamp and stack to the uncaught-exception log."""
    stack = "".join(traceback.format_exception(exc_type, exc, tb))
    entry = f"[{datetime.now().isoformat()}] Uncaught exception: {exc}\n{stack}\n"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        with open(log_dir / UNCAUGHT_LOG_NAME, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError as e:
        logger.error("Error logging uncaught exception: %s", e)


def install_exception_hooks(
    log_dir: Path, loop: asyncio.AbstractEventLoop | None = None
) -> None:
    """
    Record uncaught exceptions instead of losing them.

    Exceptions escaping background tasks are logged and the loop keeps
    running; the process-level hook records the error before the default
    handler runs.
    """
    previous_hook = sys.excepthook

    def excepthook(exc_type, exc, tb):
        record_uncaught(log_dir, exc_type, exc, tb)
        previous_hook(exc_type, exc, tb)

    sys.excepthook = excepthook

    if loop is None:
        return

    def loop_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        if exc is not None:
            record_uncaught(log_dir, type(exc), exc, exc.__traceback__)
        logger.error("Unhandled error in event loop: %s", context.get("message"))

    loop.set_exception_handler(loop_handler)
