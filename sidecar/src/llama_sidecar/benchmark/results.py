"""Benchmark result records."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from llama_sidecar.llama.runner import RunOutput
from llama_sidecar.llama.timing import tokens_per_second

__all__ = [
    "PromptResult",
    "PromptError",
    "BenchmarkAggregate",
    "BenchmarkSuccess",
    "BenchmarkError",
    "BenchmarkResult",
    "result_to_dict",
]

RESPONSE_PREVIEW_CHARS = 500


@dataclass
class PromptResult:
    prompt: str
    response: str
    time_seconds: float
    setup_time_seconds: float
    generation_time_seconds: float
    token_count: int
    tokens_per_second: float
    generation_tokens_per_second: float
    kind: Literal["success"] = "success"

    @classmethod
    def from_run(cls, prompt: str, output: RunOutput) -> "PromptResult":
        return cls(
            prompt=prompt,
            response=output.text[:RESPONSE_PREVIEW_CHARS],
            time_seconds=output.timing.total_time,
            setup_time_seconds=output.timing.setup_time,
            generation_time_seconds=output.timing.generation_time,
            token_count=output.token_count,
            tokens_per_second=output.tokens_per_second,
            generation_tokens_per_second=output.generation_tokens_per_second,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "response": self.response,
            "timeSeconds": self.time_seconds,
            "setupTimeSeconds": self.setup_time_seconds,
            "generationTimeSeconds": self.generation_time_seconds,
            "tokenCount": self.token_count,
            "tokensPerSecond": self.tokens_per_second,
            "generationTokensPerSecond": self.generation_tokens_per_second,
        }


@dataclass
class PromptError:
    prompt: str
    error: str
    kind: Literal["error"] = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "error": self.error}


@dataclass
class BenchmarkAggregate:
    total_tokens: int = 0
    total_time: float = 0.0
    total_setup_time: float = 0.0
    total_generation_time: float = 0.0

    @classmethod
    def from_prompts(cls, prompts: list[PromptResult | PromptError]) -> "BenchmarkAggregate":
        aggregate = cls()
        for result in prompts:
            if isinstance(result, PromptError):
                continue
            aggregate.total_tokens += result.token_count
            aggregate.total_time += result.time_seconds
            aggregate.total_setup_time += result.setup_time_seconds
            aggregate.total_generation_time += result.generation_time_seconds
        return aggregate

    @property
    def average_tokens_per_sec(self) -> float:
        return tokens_per_second(self.total_tokens, self.total_time)

    @property
    def average_generation_tokens_per_sec(self) -> float:
        return tokens_per_second(self.total_tokens, self.total_generation_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTokens": self.total_tokens,
            "totalTime": self.total_time,
            "totalSetupTime": self.total_setup_time,
            "totalGenerationTime": self.total_generation_time,
            "averageTokensPerSec": self.average_tokens_per_sec,
            "averageGenerationTokensPerSec": self.average_generation_tokens_per_sec,
        }


@dataclass
class BenchmarkSuccess:
    model: str
    path: str
    file_size: int
    prompts: list[PromptResult | PromptError] = field(default_factory=list)
    aggregate: BenchmarkAggregate = field(default_factory=BenchmarkAggregate)
    kind: Literal["success"] = "success"


@dataclass
class BenchmarkError:
    model: str
    path: str
    error: str
    kind: Literal["error"] = "error"


BenchmarkResult = BenchmarkSuccess | BenchmarkError


def result_to_dict(result: BenchmarkResult) -> dict[str, Any]:
    if isinstance(result, BenchmarkSuccess):
        return {
            "model": result.model,
            "path": result.path,
            "fileSize": result.file_size,
            "prompts": [prompt.to_dict() for prompt in result.prompts],
            "aggregate": result.aggregate.to_dict(),
        }
    if isinstance(result, BenchmarkError):
        return {"model": result.model, "path": result.path, "error": result.error}
    raise TypeError(f"Unknown benchmark result: {result!r}")
