"""Command-line entry point for benchmarking every model."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from llama_sidecar.configs.settings import SidecarConfig
from llama_sidecar.diagnostics import configure_logging
from llama_sidecar.exceptions import LlamaSidecarError
from llama_sidecar.llama.service import LlamaService
from .runner import BenchmarkRunner

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="llama-benchmark",
        description="Benchmark every GGUF model in the models directory.",
    )
    parser.add_argument("--models-dir", help="Directory containing .gguf files")
    parser.add_argument(
        "--delete-after",
        action="store_true",
        help="Delete each model file after it has been benchmarked",
    )
    parser.add_argument("--config", help="YAML configuration file")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = SidecarConfig.load(args.config)
    if args.models_dir:
        config = SidecarConfig.from_dict({**config.to_dict(), "models_dir": args.models_dir})
    configure_logging(config, prefix="llama-benchmark")

    service = LlamaService(config)
    runner = BenchmarkRunner(service, delete_after=args.delete_after)
    logger.info("Models directory: %s", config.models_dir)
    try:
        await runner.benchmark_all()
    except LlamaSidecarError as e:
        logger.error("Benchmark failed: %s", e)
        return 1
    finally:
        service.stop_all_processes()
    return 0


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(run(parse_args(argv))))


if __name__ == "__main__":
    main()
