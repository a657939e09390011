import asyncio
import logging
import sys

import pytest

from llama_sidecar.configs.settings import SidecarConfig
from llama_sidecar.diagnostics import (
    UNCAUGHT_LOG_NAME,
    configure_logging,
    install_exception_hooks,
    record_uncaught,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_record_uncaught_appends_entries(tmp_path):
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        record_uncaught(tmp_path, type(e), e, e.__traceback__)
        record_uncaught(tmp_path, type(e), e, e.__traceback__)

    text = (tmp_path / UNCAUGHT_LOG_NAME).read_text(encoding="utf-8")
    assert text.count("Uncaught exception: boom") == 2
    assert "RuntimeError" in text


def test_configure_logging_writes_log_file(tmp_path, restore_logging):
    config = SidecarConfig(resources_dir=tmp_path, log_level="debug")

    configure_logging(config, prefix="test-sidecar")
    logging.getLogger("llama_sidecar.test").debug("hello file")

    assert logging.getLogger().level == logging.DEBUG
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello file" in (config.log_dir / "test-sidecar.log").read_text(encoding="utf-8")


def test_excepthook_records_and_chains(tmp_path, monkeypatch):
    seen = []
    monkeypatch.setattr(sys, "excepthook", lambda *args: seen.append(args))

    install_exception_hooks(tmp_path)
    error = ValueError("hook")
    sys.excepthook(ValueError, error, None)

    assert seen and seen[0][1] is error
    assert "hook" in (tmp_path / UNCAUGHT_LOG_NAME).read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_loop_handler_records_task_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    install_exception_hooks(tmp_path, loop)
    try:
        loop.call_exception_handler(
            {"message": "Task exception was never retrieved", "exception": KeyError("lost")}
        )
    finally:
        loop.set_exception_handler(previous)

    assert "lost" in (tmp_path / UNCAUGHT_LOG_NAME).read_text(encoding="utf-8")
