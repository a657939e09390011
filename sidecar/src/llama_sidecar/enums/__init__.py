from .process import ProcessPurpose, ProcessState
from .stream import StreamEvent

__all__ = ["ProcessPurpose", "ProcessState", "StreamEvent"]
