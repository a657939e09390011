"""
Process supervisor for inference runs.

Owns every spawned inference process from spawn to its terminal event. The
registry is only touched from the event loop thread; callers that move work
to other threads must hand results back to the loop before touching it.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import signal
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from llama_sidecar.enums import ProcessPurpose, ProcessState
from llama_sidecar.exceptions import SpawnError
from .timing import TimingRecord

logger = logging.getLogger(__name__)

__all__ = ["ProcessHandle", "ProcessSupervisor"]

_QUIT_KEYSTROKE = b"q\n"
_STOPPED_MESSAGE = "Model processes were stopped before this run started"


@dataclass(eq=False)
class ProcessHandle:
    """One in-flight inference process and the output captured from it."""

    id: str
    purpose: ProcessPurpose
    process: asyncio.subprocess.Process
    started_at: float = field(default_factory=time.monotonic)
    state: ProcessState = ProcessState.SPAWNED
    first_output_at: float | None = None
    last_output_at: float | None = None
    watchdog: asyncio.TimerHandle | None = None
    _chunks: list[str] = field(default_factory=list)
    _stderr_tail: deque = field(default_factory=lambda: deque(maxlen=20))

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def alive(self) -> bool:
        return self.process.returncode is None

    @property
    def output(self) -> str:
        return "".join(self._chunks)

    @property
    def has_output(self) -> bool:
        return any(self._chunks)

    @property
    def stderr_tail(self) -> str:
        return "".join(self._stderr_tail).strip()

    def timing(self, ended_at: float | None = None) -> TimingRecord:
        return TimingRecord(
            started_at=self.started_at,
            ended_at=ended_at if ended_at is not None else time.monotonic(),
            first_output_at=self.first_output_at,
            last_output_at=self.last_output_at,
        )


class ProcessSupervisor:
    """
    Spawns inference processes and tracks them until they finish.

    Every handle enters the registry at spawn and leaves it exactly once:
    through ``release`` when its consumer sees a terminal state, or through
    ``stop``/``stop_all``.
    """

    def __init__(self, quit_grace: float = 1.0, close_stdin: bool = True):
        """
        Initialize the supervisor.
        Args:
            quit_grace: Seconds between the quit keystroke and the interrupt
                signal when a process looks stuck.
            close_stdin: Close the child's stdin right after spawn so it can
                never wait on interactive input.
        """
        self.quit_grace = quit_grace
        self.close_stdin = close_stdin
        self._handles: dict[str, ProcessHandle] = {}
        self._counter = itertools.count(1)
        self._generation = 0

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, handle_id: object) -> bool:
        return handle_id in self._handles

    def get(self, handle_id: str) -> ProcessHandle | None:
        return self._handles.get(handle_id)

    @property
    def generation(self) -> int:
        """Number of ``stop_all`` calls so far."""
        return self._generation

    def new_id(self, purpose: ProcessPurpose) -> str:
        return f"{purpose.value}-{int(time.time() * 1000)}-{next(self._counter)}"

    async def spawn(
        self,
        binary_path: str | Path,
        args: Sequence[str],
        env: Mapping[str, str],
        cwd: str | Path,
        purpose: ProcessPurpose = ProcessPurpose.STANDARD,
        watchdog: float | None = None,
        handle_id: str | None = None,
        generation: int | None = None,
    ) -> ProcessHandle:
        """
        Start the binary and register it.
        Args:
            binary_path: The inference binary.
            args: Arguments from the command builder.
            env: Environment with the library search path set.
            cwd: Working directory, normally the binary's own directory.
            purpose: Tag used in the handle id.
            watchdog: Seconds without any output before the process is
                treated as stuck. ``None`` disables the watchdog.
            handle_id: Reuse an id that was handed out before spawning.
            generation: The ``generation`` seen when the caller started
                preparing this run. A ``stop_all`` since then cancels it.
        Returns:
            The registered handle, in the running state.
        Raises:
            SpawnError: If the process could not be created, or a
                ``stop_all`` happened since ``generation``.
        """
        if self._stopped_since(generation):
            raise SpawnError(_STOPPED_MESSAGE)
        try:
            process = await asyncio.create_subprocess_exec(
                str(binary_path),
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(env),
                cwd=str(cwd),
            )
        except (OSError, ValueError, TypeError) as e:
            raise SpawnError(f"Failed to start model process: {e}") from e

        if self._stopped_since(generation):
            self.interrupt_process(process)
            raise SpawnError(_STOPPED_MESSAGE)

        handle = ProcessHandle(
            id=handle_id or self.new_id(purpose),
            purpose=purpose,
            process=process,
        )
        self._handles[handle.id] = handle
        logger.info("Spawned %s (pid %s)", handle.id, process.pid)

        if self.close_stdin and process.stdin is not None:
            process.stdin.close()
        handle.state = ProcessState.RUNNING

        if watchdog is not None and watchdog > 0:
            loop = asyncio.get_running_loop()
            handle.watchdog = loop.call_later(watchdog, self._on_watchdog, handle)
        return handle

    def mark_alive(self, handle: ProcessHandle) -> None:
        """Any output proves liveness and disarms the watchdog."""
        if handle.watchdog is not None:
            handle.watchdog.cancel()
            handle.watchdog = None

    def record_output(self, handle: ProcessHandle, text: str) -> None:
        self.mark_alive(handle)
        handle._chunks.append(text)
        if text.strip():
            now = time.monotonic()
            if handle.first_output_at is None:
                handle.first_output_at = now
                logger.debug(
                    "First output from %s after %.2fs", handle.id, now - handle.started_at
                )
            handle.last_output_at = now

    def record_stderr(self, handle: ProcessHandle, text: str) -> None:
        self.mark_alive(handle)
        handle._stderr_tail.append(text)

    def release(self, handle: ProcessHandle, state: ProcessState) -> bool:
        """
        Remove a handle after its process reached ``state``.

        Returns False when the handle had already left the registry, e.g.
        after ``stop_all``; its recorded state is kept in that case.
        """
        self.mark_alive(handle)
        removed = self._handles.pop(handle.id, None) is not None
        if removed:
            handle.state = state
            logger.debug("Released %s (%s)", handle.id, state.value)
        return removed

    def stop(self, handle_id: str) -> bool:
        handle = self._handles.pop(handle_id, None)
        if handle is None:
            return False
        self._kill(handle)
        return True

    def stop_all(self) -> int:
        """
        Interrupt every registered process and empty the registry.

        Does not wait for the processes to exit.
        """
        self._generation += 1
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            self._kill(handle)
        if handles:
            logger.info("Stopped %d model process(es)", len(handles))
        return len(handles)

    def _stopped_since(self, generation: int | None) -> bool:
        return generation is not None and generation != self._generation

    def _kill(self, handle: ProcessHandle) -> None:
        self.mark_alive(handle)
        handle.state = ProcessState.KILLED
        self.interrupt(handle)

    def _on_watchdog(self, handle: ProcessHandle) -> None:
        handle.watchdog = None
        if not handle.alive or handle.state.is_terminal:
            return
        logger.warning("Process %s produced no output, attempting to exit", handle.id)

        stdin = handle.process.stdin
        if stdin is not None and not stdin.is_closing():
            try:
                stdin.write(_QUIT_KEYSTROKE)
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.debug("Quit keystroke to %s failed: %s", handle.id, e)

        loop = asyncio.get_running_loop()
        handle.watchdog = loop.call_later(self.quit_grace, self._escalate, handle)

    def _escalate(self, handle: ProcessHandle) -> None:
        handle.watchdog = None
        if handle.alive and not handle.state.is_terminal:
            logger.warning("Process %s still running, sending interrupt", handle.id)
            self.interrupt(handle)

    @classmethod
    def interrupt(cls, handle: ProcessHandle) -> None:
        cls.interrupt_process(handle.process)

    @staticmethod
    def interrupt_process(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            if sys.platform == "win32":
                process.terminate()
            else:
                process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            pass
