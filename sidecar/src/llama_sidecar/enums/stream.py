from enum import Enum


class StreamEvent(Enum):
    """Events emitted for a streaming query, named as the host expects them."""
    START = "stream-start"
    DATA = "stream-data"
    END = "stream-end"
    ERROR = "stream-error"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamEvent.END, StreamEvent.ERROR)
