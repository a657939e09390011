"""Request handler routing IPC methods to the llama service."""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable

from llama_sidecar import __version__
from llama_sidecar.benchmark import DEFAULT_PROMPTS, BenchmarkRunner, result_to_dict
from llama_sidecar.enums import StreamEvent
from llama_sidecar.exceptions import LlamaSidecarError
from llama_sidecar.llama.service import LlamaService

logger = logging.getLogger(__name__)

EventEmitter = Callable[[str, dict], Any]


def _failure(error: Exception) -> dict[str, Any]:
    return {"success": False, "error": str(error) or type(error).__name__}


class RequestHandler:
    """Routes incoming IPC method calls to the llama service."""

    def __init__(
        self,
        service: LlamaService,
        benchmark_runner: BenchmarkRunner | None = None,
    ):
        """
        Initialize the request handler.
        Args:
            service: The service shared by every request.
            benchmark_runner: Runner for ``llama.benchmark``; built on demand.
        """
        self.service = service
        self.benchmark_runner = benchmark_runner or BenchmarkRunner(service)
        self.shutdown_timer: asyncio.TimerHandle | None = None

        self._handlers: dict[str, Callable] = {
            "health.ping": self._health_ping,
            "lifecycle.shutdown": self._lifecycle_shutdown,
            "llama.has_models": self._has_models,
            "llama.get_models": self._get_models,
            "llama.check_models": self._check_models,
            "llama.load_model": self._load_model,
            "llama.query_model": self._query_model,
            "llama.stream_query": self._stream_query,
            "llama.stop_query": self._stop_query,
            "llama.stop_processes": self._stop_processes,
            "llama.benchmark": self._benchmark,
        }

    async def dispatch(
        self,
        method: str,
        params: dict,
        emit: EventEmitter | None = None,
    ) -> Any:
        """
        Dispatch an IPC method call to the appropriate handler.
        Args:
            method: The method to dispatch.
            params: The parameters for the method.
            emit: Callback for events tied to this request, called with the
                event name and its payload.
        Returns:
            The result of the method call.
        """
        handler = self._handlers.get(method)
        if handler is None:
            raise ValueError(f"Unknown method: {method}")
        return await handler(params or {}, emit)

    # ── Built-in handlers ─────────────────────────────────────────

    async def _health_ping(self, params, _emit):
        return {"status": "ok", "version": __version__}

    async def _lifecycle_shutdown(self, params, _emit):
        logger.info("Shutdown requested by host")
        stopped = self.service.stop_all_processes()
        self.shutdown_timer = asyncio.get_running_loop().call_later(0.5, sys.exit, 0)
        return {"status": "shutting_down", "stopped": stopped}

    # ── Model handlers ────────────────────────────────────────────

    async def _has_models(self, params, _emit):
        return {"hasModels": self.service.has_models()}

    async def _get_models(self, params, _emit):
        return {"models": self.service.get_models()}

    async def _check_models(self, params, _emit):
        return {"models": [info.to_dict() for info in self.service.check_models()]}

    async def _load_model(self, params, _emit):
        name = params.get("path") or params.get("model") or params.get("model_id")
        if not name:
            return {"success": False, "error": "Missing model path or name"}
        if self.service.load_model(name):
            return {"success": True, "model": str(self.service.active_model)}
        return {"success": False, "error": f"No model matching '{name}'"}

    # ── Query handlers ────────────────────────────────────────────

    async def _query_model(self, params, emit):
        options = params.get("options") or {}
        if options.get("streaming"):
            return await self._stream_query(params, emit)

        try:
            response = await self.service.query_model(params["prompt"], options)
        except (LlamaSidecarError, KeyError, OSError) as e:
            logger.error("Error querying model: %s", e)
            return _failure(e)
        return {"success": True, "response": response}

    async def _stream_query(self, params, emit):
        def listener(event: StreamEvent, payload: dict) -> None:
            if emit is not None:
                emit(event.value, payload)

        query_id = await self.service.stream_query(
            params.get("prompt", ""),
            listener,
            params.get("options"),
        )
        return {"queryId": query_id}

    async def _stop_query(self, params, _emit):
        query_id = params.get("queryId") or params.get("query_id")
        if not query_id:
            return {"success": False, "error": "Missing queryId"}
        return {"success": self.service.stop_query(query_id)}

    async def _stop_processes(self, params, _emit):
        stopped = self.service.stop_all_processes()
        return {"success": True, "stopped": stopped}

    async def _benchmark(self, params, emit):
        def on_result(index: int, total: int, result) -> None:
            if emit is not None:
                emit(
                    "benchmark-progress",
                    {"index": index, "total": total, "result": result_to_dict(result)},
                )

        prompts = params.get("prompts") or DEFAULT_PROMPTS
        try:
            results = await self.benchmark_runner.benchmark_all(prompts, on_result)
        except (LlamaSidecarError, OSError) as e:
            logger.error("Benchmark failed: %s", e)
            return _failure(e)
        return {
            "success": True,
            "results": [result_to_dict(result) for result in results],
            "resultsFile": str(self.benchmark_runner.results_file),
        }
