"""
Session facade over the llama.cpp command-line binary.

Composes the model registry, capability probe, command builder, process
supervisor and output collection for each query.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

from llama_sidecar.configs.model import ModelInfo
from llama_sidecar.configs.options import ModelOptions
from llama_sidecar.configs.settings import SidecarConfig
from llama_sidecar.enums import ProcessPurpose
from llama_sidecar.exceptions import (
    LibraryUnavailableError,
    LlamaSidecarError,
    NoModelLoadedError,
    ProbeError,
    SpawnError,
)
from llama_sidecar.models.registry import ModelRegistry
from . import runner
from .command import build_args
from .environment import build_env, library_name, locate_library
from .probe import probe
from .runner import RunOutput
from .streaming import StreamChannel, StreamListener
from .supervisor import ProcessHandle, ProcessSupervisor

logger = logging.getLogger(__name__)

__all__ = ["LlamaService"]

OptionsInput = ModelOptions | Mapping[str, Any] | None


class LlamaService:
    """Runs prompts through the inference binary, one process per query."""

    def __init__(
        self,
        config: SidecarConfig,
        registry: ModelRegistry | None = None,
        supervisor: ProcessSupervisor | None = None,
    ):
        """
        Initialize the service.
        Args:
            config: Paths, watchdog thresholds and streaming caps.
            registry: Model registry; defaults to one over ``config.models_dir``.
            supervisor: Process supervisor; defaults to a fresh one.
        """
        self.config = config
        self.registry = registry or ModelRegistry(config.models_dir)
        self.supervisor = supervisor or ProcessSupervisor(
            quit_grace=config.quit_grace, close_stdin=config.close_stdin
        )
        self._stream_tasks: set[asyncio.Task] = set()

    # ── Model registry ───────────────────────────────────────────

    @property
    def active_model(self) -> Path | None:
        return self.registry.active_model

    def has_models(self) -> bool:
        return self.registry.has_models()

    def get_models(self) -> list[str]:
        return self.registry.list_models()

    def check_models(self) -> list[ModelInfo]:
        return self.registry.describe_models()

    def load_model(self, name_or_path: str) -> bool:
        return self.registry.load_model(name_or_path)

    # ── Binary and environment ───────────────────────────────────

    def ensure_library(self) -> Path:
        """
        Return the directory holding the binary's shared library.
        Raises:
            LibraryUnavailableError: If the library is in neither the lib
                dir nor the binary's directory.
        """
        directory = locate_library(self.config.lib_dir, self.config.binary_path)
        if directory is None:
            raise LibraryUnavailableError(
                f"Required library {library_name()} not found in {self.config.lib_dir}"
            )
        return directory

    def ensure_binary(self) -> Path:
        if not self.config.binary_path.is_file():
            raise SpawnError(f"Required binary not found at {self.config.binary_path}")
        return self.config.binary_path

    async def detect_capabilities(self, env: Mapping[str, str], cwd: Path) -> frozenset[str]:
        """Probe the binary; an unusable probe yields the minimal flag set."""
        try:
            return await asyncio.to_thread(
                probe,
                self.config.binary_path,
                env,
                cwd,
                self.config.probe_timeout,
            )
        except ProbeError as e:
            logger.warning("Couldn't detect advanced flags, using defaults: %s", e)
            return frozenset()

    async def _spawn(
        self,
        model_path: str | Path,
        prompt: str,
        options: ModelOptions,
        purpose: ProcessPurpose,
        watchdog: float | None,
        handle_id: str | None = None,
    ) -> ProcessHandle:
        # A stop_all during the probe below must also cancel this run.
        generation = self.supervisor.generation
        lib_dir = self.ensure_library()
        env = build_env(lib_dir)
        # The binary resolves some resources relative to its own directory.
        cwd = self.config.binary_path.parent

        capabilities = await self.detect_capabilities(env, cwd)
        args = build_args(model_path, prompt, options, capabilities)
        logger.info("Running %s with prompt: %r", Path(model_path).name, str(prompt)[:50])
        return await self.supervisor.spawn(
            self.config.binary_path,
            args,
            env=env,
            cwd=cwd,
            purpose=purpose,
            watchdog=watchdog,
            handle_id=handle_id,
            generation=generation,
        )

    def _require_model(self) -> Path:
        model = self.registry.active_model
        if model is None:
            raise NoModelLoadedError("No model loaded. Please load a model first.")
        return model

    # ── Queries ──────────────────────────────────────────────────

    async def run_prompt(
        self,
        model_path: str | Path,
        prompt: str,
        options: OptionsInput = None,
        purpose: ProcessPurpose = ProcessPurpose.STANDARD,
        watchdog: float | None = None,
    ) -> RunOutput:
        """Run one prompt against ``model_path`` and wait for the full output."""
        merged = ModelOptions.merged(options)
        if watchdog is None:
            watchdog = self.config.standard_watchdog
        handle = await self._spawn(model_path, prompt, merged, purpose, watchdog)
        return await runner.collect(self.supervisor, handle, self.config.chunk_size)

    async def query_model(self, prompt: str, options: OptionsInput = None) -> str:
        """
        Run a prompt against the active model.
        Raises:
            NoModelLoadedError: No model is active.
            LibraryUnavailableError: The shared library is missing.
            SpawnError: The binary could not be started.
            InvalidOptionsError: An option value has the wrong type.
            ProcessError: The binary exited with a non-zero code.
            EmptyOutputError: The binary produced no output.
        """
        model = self._require_model()
        output = await self.run_prompt(model, prompt, options)
        return output.text

    async def stream_query(
        self,
        prompt: str,
        listener: StreamListener,
        options: OptionsInput = None,
    ) -> str:
        """
        Start a streaming query and return its id once the process is running.

        Events go to ``listener``; failures before spawning, including bad
        options, are reported as ``start`` followed by ``error`` rather than
        raised.
        """
        query_id = self.supervisor.new_id(ProcessPurpose.STREAMING)
        channel = StreamChannel(query_id, listener)
        channel.start()

        try:
            model = self._require_model()
            merged = ModelOptions.merged(options).capped(
                self.config.stream_context_cap, self.config.stream_max_tokens_cap
            )
            handle = await self._spawn(
                model,
                prompt,
                replace(merged, streaming=True),
                ProcessPurpose.STREAMING,
                self.config.streaming_watchdog,
                handle_id=query_id,
            )
        except (LlamaSidecarError, OSError) as e:
            logger.error("Streaming query %s failed to start: %s", query_id, e)
            channel.error(str(e))
            return query_id

        task = asyncio.create_task(
            runner.stream(self.supervisor, handle, channel, self.config.chunk_size)
        )
        self._stream_tasks.add(task)
        task.add_done_callback(functools.partial(self._stream_done, channel))
        return query_id

    def _stream_done(self, channel: StreamChannel, task: asyncio.Task) -> None:
        self._stream_tasks.discard(task)
        if task.cancelled():
            channel.error("Streaming query cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Streaming query %s failed: %s", channel.query_id, exc)
            channel.error(str(exc))

    async def wait_streams(self) -> None:
        """Wait until every running streaming query has finished."""
        if self._stream_tasks:
            await asyncio.gather(*self._stream_tasks, return_exceptions=True)

    # ── Process control ──────────────────────────────────────────

    def stop_query(self, query_id: str) -> bool:
        return self.supervisor.stop(query_id)

    def stop_all_processes(self) -> int:
        return self.supervisor.stop_all()
