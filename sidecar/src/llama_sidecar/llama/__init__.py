"""Orchestration of the llama.cpp command-line binary."""

from .command import build_args, thread_count
from .probe import capabilities_from_help, probe
from .runner import RunOutput
from .service import LlamaService
from .streaming import StreamChannel
from .supervisor import ProcessHandle, ProcessSupervisor

__all__ = [
    "LlamaService",
    "ProcessHandle",
    "ProcessSupervisor",
    "RunOutput",
    "StreamChannel",
    "build_args",
    "capabilities_from_help",
    "probe",
    "thread_count",
]
