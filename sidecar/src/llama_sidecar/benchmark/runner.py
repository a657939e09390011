"""
Benchmark driver.

Runs a fixed prompt set against every model in the models directory, one
process at a time. A failing prompt or model is recorded and the batch
continues with the next one.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from llama_sidecar.configs.options import ModelOptions
from llama_sidecar.enums import ProcessPurpose
from llama_sidecar.exceptions import LlamaSidecarError, NoMatchError
from llama_sidecar.llama.service import LlamaService
from .prompts import DEFAULT_PROMPTS
from .results import (
    BenchmarkAggregate,
    BenchmarkError,
    BenchmarkResult,
    BenchmarkSuccess,
    PromptError,
    PromptResult,
    result_to_dict,
)

logger = logging.getLogger(__name__)

__all__ = ["BenchmarkRunner", "BENCHMARK_OPTIONS", "format_summary"]

BENCHMARK_OPTIONS = ModelOptions(max_tokens=300)


def format_summary(results: Sequence[BenchmarkResult]) -> str:
    lines = [
        "Model | Size | Total Time | Setup Time | Gen Time | Tokens | Total t/s | Gen t/s",
    ]
    for result in results:
        if isinstance(result, BenchmarkError):
            lines.append(f"{result.model}: ERROR - {result.error}")
            continue
        aggregate = result.aggregate
        lines.append(
            f"{result.model} | "
            f"{result.file_size / (1024 * 1024):.1f}MB | "
            f"{aggregate.total_time:.1f}s | "
            f"{aggregate.total_setup_time:.1f}s | "
            f"{aggregate.total_generation_time:.1f}s | "
            f"{aggregate.total_tokens} | "
            f"{aggregate.average_tokens_per_sec:.2f} | "
            f"{aggregate.average_generation_tokens_per_sec:.2f}"
        )
    return "\n".join(lines)


class BenchmarkRunner:
    """Benchmarks every available model with the same prompts."""

    def __init__(
        self,
        service: LlamaService,
        output_dir: Path | None = None,
        delete_after: bool = False,
        options: ModelOptions = BENCHMARK_OPTIONS,
    ):
        """
        Initialize the benchmark runner.
        Args:
            service: The service used to run prompts.
            output_dir: Where result files go; defaults to the log directory.
            delete_after: Delete each model file once it has been benchmarked.
            options: Generation options for every prompt.
        """
        self.service = service
        self.output_dir = Path(output_dir or service.config.log_dir)
        self.delete_after = delete_after
        self.options = options
        self.results_file: Path | None = None

    async def benchmark_model(
        self, model_path: str, prompts: Sequence[str] = DEFAULT_PROMPTS
    ) -> BenchmarkSuccess:
        path = Path(model_path)
        model_name = path.stem
        logger.info("===== Testing model: %s =====", model_name)
        config = self.service.config

        results: list[PromptResult | PromptError] = []
        for index, prompt in enumerate(prompts, start=1):
            logger.info("--- Running prompt %d/%d ---", index, len(prompts))
            try:
                output = await self.service.run_prompt(
                    path,
                    prompt,
                    self.options,
                    purpose=ProcessPurpose.BENCHMARK,
                    watchdog=config.benchmark_watchdog,
                )
                results.append(PromptResult.from_run(prompt, output))
            except LlamaSidecarError as e:
                logger.error("Error running prompt for %s: %s", model_name, e)
                results.append(PromptError(prompt=prompt, error=str(e)))

            if index < len(prompts) and config.benchmark_prompt_pause > 0:
                await asyncio.sleep(config.benchmark_prompt_pause)

        aggregate = BenchmarkAggregate.from_prompts(results)
        logger.info(
            "Summary for %s: %d tokens, %.2fs total, %.2fs setup, %.2fs generation, "
            "%.2f t/s total, %.2f t/s generation",
            model_name,
            aggregate.total_tokens,
            aggregate.total_time,
            aggregate.total_setup_time,
            aggregate.total_generation_time,
            aggregate.average_tokens_per_sec,
            aggregate.average_generation_tokens_per_sec,
        )
        return BenchmarkSuccess(
            model=model_name,
            path=str(path),
            file_size=path.stat().st_size,
            prompts=results,
            aggregate=aggregate,
        )

    async def benchmark_all(
        self,
        prompts: Sequence[str] = DEFAULT_PROMPTS,
        on_result: Callable[[int, int, BenchmarkResult], None] | None = None,
    ) -> list[BenchmarkResult]:
        """
        Benchmark every listed model and append each result to a JSONL file.

        ``on_result`` is called with the model's 1-based index, the model
        count and its result as soon as each model finishes.
        Raises:
            LibraryUnavailableError: The shared library is missing.
            SpawnError: The binary is missing.
            NoMatchError: There are no model files.
        """
        self.service.ensure_library()
        self.service.ensure_binary()
        model_paths = self.service.get_models()
        if not model_paths:
            raise NoMatchError(
                "No model files found in the models directory. "
                "Please add at least one .gguf file."
            )
        logger.info("Found %d models for benchmarking", len(model_paths))

        self.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().isoformat().replace(":", "-")
        results_file = self.output_dir / f"llama-benchmark-{timestamp}.jsonl"
        logger.info("Writing benchmark results to %s", results_file)

        results: list[BenchmarkResult] = []
        with open(results_file, "a", encoding="utf-8") as out:
            for index, model_path in enumerate(model_paths, start=1):
                try:
                    result: BenchmarkResult = await self.benchmark_model(model_path, prompts)
                except (LlamaSidecarError, OSError) as e:
                    logger.error("Error benchmarking %s: %s", Path(model_path).name, e)
                    result = BenchmarkError(
                        model=Path(model_path).stem, path=model_path, error=str(e)
                    )

                out.write(json.dumps(result_to_dict(result)) + "\n")
                out.flush()
                results.append(result)
                if on_result is not None:
                    on_result(index, len(model_paths), result)
                self._maybe_delete(model_path)

                pause = self.service.config.benchmark_model_pause
                if index < len(model_paths) and pause > 0:
                    await asyncio.sleep(pause)

        logger.info("Benchmark results summary:\n%s", format_summary(results))
        self.results_file = results_file
        return results

    def _maybe_delete(self, model_path: str) -> None:
        if not self.delete_after:
            return
        path = Path(model_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error("Could not delete %s after benchmark: %s", path, e)
            return
        logger.info("Deleted %s after benchmark", path)
