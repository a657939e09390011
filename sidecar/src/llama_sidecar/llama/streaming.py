"""Per-query event channel for streaming responses."""
from __future__ import annotations

import logging
import re
from typing import Any, Callable

from llama_sidecar.enums import StreamEvent

logger = logging.getLogger(__name__)

__all__ = ["StreamListener", "StreamChannel", "is_error_text"]

StreamListener = Callable[[StreamEvent, dict[str, Any]], None]

_ERROR_PATTERN = re.compile(r"error|exception|fatal", re.IGNORECASE)


def is_error_text(text: str) -> bool:
    """Whether a stderr chunk reports a failure rather than progress logging."""
    return _ERROR_PATTERN.search(text) is not None


class StreamChannel:
    """
    Delivers one query's events to a listener in order.

    The sequence is ``start``, any number of ``data``, then exactly one of
    ``end`` or ``error``. Anything emitted out of that order is dropped, and
    the listener is detached once the terminal event has been delivered.
    """

    def __init__(self, query_id: str, listener: StreamListener):
        self.query_id = query_id
        self._listener: StreamListener | None = listener
        self._started = False
        self._terminal: StreamEvent | None = None

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def terminal_event(self) -> StreamEvent | None:
        return self._terminal

    def start(self) -> None:
        if self._started or self.closed:
            return
        self._started = True
        self._deliver(StreamEvent.START, {})

    def data(self, chunk: str) -> None:
        if not self._started or self.closed or not chunk:
            return
        self._deliver(StreamEvent.DATA, {"chunk": chunk})

    def end(self, full_response: str) -> None:
        self._finish(StreamEvent.END, {"fullResponse": full_response})

    def error(self, message: str) -> None:
        self._finish(StreamEvent.ERROR, {"error": message})

    def _finish(self, event: StreamEvent, payload: dict[str, Any]) -> None:
        if self.closed:
            return
        self.start()
        self._terminal = event
        try:
            self._deliver(event, payload)
        finally:
            self._listener = None

    def _deliver(self, event: StreamEvent, payload: dict[str, Any]) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            listener(event, {"queryId": self.query_id, **payload})
        except Exception:
            logger.exception("Stream listener failed on %s for %s", event.value, self.query_id)
