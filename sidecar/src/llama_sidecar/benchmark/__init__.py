"""Batch benchmarking of every available model."""

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
from .runner import BenchmarkRunner, format_summary

__all__ = [
    "DEFAULT_PROMPTS",
    "BenchmarkAggregate",
    "BenchmarkError",
    "BenchmarkResult",
    "BenchmarkRunner",
    "BenchmarkSuccess",
    "PromptError",
    "PromptResult",
    "format_summary",
    "result_to_dict",
]
