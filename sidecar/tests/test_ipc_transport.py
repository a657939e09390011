import io
import json
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

from llama_sidecar.ipc.ndjson_transport import NdjsonTransport, parse_line


@pytest.fixture
def transport():
    """Fixture to provide an NdjsonTransport instance."""
    return NdjsonTransport()


@pytest.fixture
def stdout_buffer(monkeypatch):
    """Capture what the transport writes to stdout."""
    buffer = io.BytesIO()
    mock_stdout = MagicMock()
    mock_stdout.buffer = buffer
    mock_stdout.buffer.write = buffer.write
    mock_stdout.buffer.flush = lambda: None

    monkeypatch.setattr(sys, "stdout", mock_stdout)
    return buffer


def written(buffer: io.BytesIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().decode("utf-8").splitlines()]


@pytest.mark.asyncio
async def test_read_requests_skips_bad_lines(transport):
    """Verify that read_requests yields only JSON objects from the stream."""
    mock_reader = AsyncMock()
    mock_reader.readline.side_effect = [
        b'{"id": "1", "method": "llama.has_models"}\n',
        b"\n",
        b"INVALID_JSON\n",
        b"[1, 2, 3]\n",
        b"\xff\xfe\n",
        b'{"id": "2", "method": "llama.get_models"}\n',
        b"",
    ]
    transport._reader = mock_reader

    requests = [req async for req in transport.read_requests()]

    assert [req["id"] for req in requests] == ["1", "2"]
    assert requests[0]["method"] == "llama.has_models"


@pytest.mark.asyncio
async def test_send_response_format(transport):
    """Verify send_response calls write with correct format."""
    transport._write = AsyncMock()

    await transport.send_response("req-123", result={"hasModels": True})

    transport._write.assert_called_once_with({"id": "req-123", "result": {"hasModels": True}})


@pytest.mark.asyncio
async def test_send_response_keeps_false_result(transport):
    transport._write = AsyncMock()

    await transport.send_response("req-124", result={"success": False})

    assert transport._write.call_args[0][0] == {"id": "req-124", "result": {"success": False}}


@pytest.mark.asyncio
async def test_send_error_writes_line(transport, stdout_buffer):
    await transport.send_error("req-456", code="NoModelLoadedError", message="No model loaded")

    assert written(stdout_buffer) == [
        {"id": "req-456", "error": {"code": "NoModelLoadedError", "message": "No model loaded"}}
    ]


@pytest.mark.asyncio
async def test_send_event_writes_line(transport, stdout_buffer):
    await transport.send_event("req-7", "stream-data", {"queryId": "q", "chunk": "Hi"})
    await transport.send_event("req-8", "benchmark-progress", {"index": 1, "total": 2})

    assert written(stdout_buffer) == [
        {"id": "req-7", "event": "stream-data", "data": {"queryId": "q", "chunk": "Hi"}},
        {"id": "req-8", "event": "benchmark-progress", "data": {"index": 1, "total": 2}},
    ]


def test_parse_line():
    assert parse_line(b'{"id": "1"}\n') == {"id": "1"}
    assert parse_line(b"   \n") is None
    assert parse_line(b'"just a string"\n') is None
    assert parse_line(b"{broken\n") is None
