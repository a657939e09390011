"""
Output collection for supervised inference processes.

``collect`` buffers a run into one completed response. ``stream`` forwards
stdout chunks to a ``StreamChannel`` as they arrive. Both read stdout and
stderr concurrently and release the handle exactly once, whatever happens.
"""
from __future__ import annotations

import asyncio
import codecs
import logging
import time
from dataclasses import dataclass
from typing import Callable

from llama_sidecar.enums import ProcessState, StreamEvent
from llama_sidecar.exceptions import EmptyOutputError, ProcessError
from .streaming import StreamChannel, is_error_text
from .supervisor import ProcessHandle, ProcessSupervisor
from .timing import TimingRecord, estimate_tokens, tokens_per_second

logger = logging.getLogger(__name__)

__all__ = ["RunOutput", "collect", "stream"]


@dataclass(frozen=True)
class RunOutput:
    """A completed inference run."""

    text: str
    exit_code: int | None
    timing: TimingRecord

    @property
    def token_count(self) -> int:
        return estimate_tokens(self.text)

    @property
    def tokens_per_second(self) -> float:
        return tokens_per_second(self.token_count, self.timing.total_time)

    @property
    def generation_tokens_per_second(self) -> float:
        return tokens_per_second(self.token_count, self.timing.generation_time)


async def _pump(
    reader: asyncio.StreamReader | None,
    on_text: Callable[[str], None],
    chunk_size: int,
) -> None:
    if reader is None:
        return
    # Chunk boundaries may split multi-byte characters.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await reader.read(chunk_size)
        if not data:
            tail = decoder.decode(b"", final=True)
            if tail:
                on_text(tail)
            return
        text = decoder.decode(data)
        if text:
            on_text(text)


async def _drain(
    supervisor: ProcessSupervisor,
    handle: ProcessHandle,
    on_stdout: Callable[[str], None],
    on_stderr: Callable[[str], None],
    chunk_size: int,
) -> int | None:
    process = handle.process
    try:
        await asyncio.gather(
            _pump(process.stdout, on_stdout, chunk_size),
            _pump(process.stderr, on_stderr, chunk_size),
        )
        return await process.wait()
    except BaseException:
        # Cancelled or broken consumer: make sure the child does not outlive us.
        if supervisor.release(handle, ProcessState.KILLED):
            supervisor.interrupt(handle)
        raise


async def collect(
    supervisor: ProcessSupervisor,
    handle: ProcessHandle,
    chunk_size: int = 4096,
) -> RunOutput:
    """
    Wait for a process and return its full stdout.
    Raises:
        ProcessError: The process exited with a non-zero code.
        EmptyOutputError: The process exited cleanly without output.
    """

    def on_stdout(text: str) -> None:
        supervisor.record_output(handle, text)

    def on_stderr(text: str) -> None:
        supervisor.record_stderr(handle, text)
        logger.debug("Model stderr (%s): %s", handle.id, text.rstrip())

    exit_code = await _drain(supervisor, handle, on_stdout, on_stderr, chunk_size)
    ended_at = time.monotonic()

    if exit_code != 0:
        supervisor.release(handle, ProcessState.FAILED)
        logger.error("Model process %s exited with code %s", handle.id, exit_code)
        raise ProcessError(exit_code, handle.stderr_tail[-500:])
    if not handle.has_output:
        supervisor.release(handle, ProcessState.FAILED)
        raise EmptyOutputError(exit_code)

    supervisor.release(handle, ProcessState.COMPLETED)
    output = RunOutput(text=handle.output, exit_code=exit_code, timing=handle.timing(ended_at))
    logger.info(
        "Model process %s finished in %.2fs (setup %.2fs, generation %.2fs, ~%d tokens)",
        handle.id,
        output.timing.total_time,
        output.timing.setup_time,
        output.timing.generation_time,
        output.token_count,
    )
    return output


async def stream(
    supervisor: ProcessSupervisor,
    handle: ProcessHandle,
    channel: StreamChannel,
    chunk_size: int = 4096,
) -> RunOutput | None:
    """
    Forward a process's stdout to ``channel`` and finish it with ``end`` or
    ``error``.

    Stderr is diagnostic noise unless it mentions an error, exception or
    fatal condition, in which case it ends the stream with ``error``.
    Returns the run output on success, None otherwise.
    """
    channel.start()

    def on_stdout(text: str) -> None:
        supervisor.record_output(handle, text)
        channel.data(text)

    def on_stderr(text: str) -> None:
        supervisor.record_stderr(handle, text)
        if is_error_text(text):
            logger.error("Model stderr (%s): %s", handle.id, text.rstrip())
            channel.error(text.strip())

    exit_code = await _drain(supervisor, handle, on_stdout, on_stderr, chunk_size)
    ended_at = time.monotonic()

    # Some termination paths report no exit code; that counts as success.
    if exit_code not in (0, None):
        supervisor.release(handle, ProcessState.FAILED)
        channel.error(str(ProcessError(exit_code)))
        return None
    if not handle.has_output:
        supervisor.release(handle, ProcessState.FAILED)
        channel.error(str(EmptyOutputError(exit_code)))
        return None
    if channel.terminal_event is StreamEvent.ERROR:
        supervisor.release(handle, ProcessState.FAILED)
        return None

    supervisor.release(handle, ProcessState.COMPLETED)
    channel.end(handle.output)
    return RunOutput(text=handle.output, exit_code=exit_code, timing=handle.timing(ended_at))
