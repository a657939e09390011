from enum import Enum


class ProcessState(Enum):
    """Lifecycle state of a supervised inference process."""
    SPAWNED = "spawned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessState.COMPLETED, ProcessState.FAILED, ProcessState.KILLED)


class ProcessPurpose(Enum):
    """Why a process was spawned; used as the handle id prefix."""
    STANDARD = "standard"
    STREAMING = "streaming"
    BENCHMARK = "benchmark"
