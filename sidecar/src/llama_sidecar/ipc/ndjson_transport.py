"""NDJSON transport over stdin/stdout between the desktop host and the sidecar."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)


def parse_line(line: bytes) -> dict | None:
    """Decode one input line; blank, malformed and non-object lines give None."""
    try:
        decoded = line.decode("utf-8").strip()
        if not decoded:
            return None
        message = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Malformed input line: %s", e)
        return None

    if not isinstance(message, dict):
        logger.warning("Ignoring non-object request: %r", decoded[:200])
        return None
    return message


class NdjsonTransport:
    """
    Reads request objects from stdin and writes one JSON object per line to
    stdout. Writers share an asyncio Lock so lines never interleave.
    """

    def __init__(self):
        self._write_lock = asyncio.Lock()
        self._reader: asyncio.StreamReader | None = None

    async def _ensure_reader(self) -> asyncio.StreamReader:
        if self._reader is None:
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(reader)
            await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
            self._reader = reader
        return self._reader

    async def read_requests(self) -> AsyncIterator[dict]:
        """Yield requests until the host closes stdin."""
        reader = await self._ensure_reader()

        while True:
            line = await reader.readline()
            if not line:
                logger.info("stdin closed by host")
                return
            request = parse_line(line)
            if request is not None:
                yield request

    async def send_response(self, request_id: str, result: Any = None, error: dict | None = None):
        message: dict[str, Any] = {"id": request_id}
        if result is not None:
            message["result"] = result
        if error is not None:
            message["error"] = error
        await self._write(message)

    async def send_error(self, request_id: str, code: str, message: str):
        await self.send_response(request_id, error={"code": code, "message": message})

    async def send_event(self, request_id: str, event: str, data: dict):
        """Send a named event (e.g. ``stream-data``) tied to a request."""
        await self._write({"id": request_id, "event": event, "data": data})

    async def _write(self, message: dict):
        encoded = (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")
        async with self._write_lock:
            sys.stdout.buffer.write(encoded)
            sys.stdout.buffer.flush()
