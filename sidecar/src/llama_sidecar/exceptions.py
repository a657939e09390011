from __future__ import annotations


class LlamaSidecarError(Exception):
    """Base exception for the llama sidecar."""
    pass

class ProbeError(LlamaSidecarError):
    """Raised when the inference binary's help output cannot be obtained."""
    pass

class SpawnError(LlamaSidecarError):
    """Raised when the inference binary cannot be started."""
    pass

class ProcessError(LlamaSidecarError):
    """Raised when the inference process exits with a non-zero code."""

    def __init__(self, exit_code: int | None, detail: str = "") -> None:
        self.exit_code = exit_code
        message = f"Model process exited with code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

class EmptyOutputError(LlamaSidecarError):
    """Raised when the inference process exits cleanly without producing output."""

    def __init__(self, exit_code: int | None = 0) -> None:
        self.exit_code = exit_code
        super().__init__(
            f"Model process exited with code {exit_code} without producing output"
        )

class NoModelLoadedError(LlamaSidecarError):
    """Raised when a query is attempted before a model is loaded."""
    pass

class NoMatchError(LlamaSidecarError):
    """Raised when no model file matches a name or path."""
    pass

class LibraryUnavailableError(LlamaSidecarError):
    """Raised when the binary's shared library cannot be located."""
    pass

class InvalidOptionsError(LlamaSidecarError):
    """Raised when a generation option cannot be converted to its type."""
    pass
