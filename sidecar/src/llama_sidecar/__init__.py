"""Sidecar that runs local GGUF models through the llama.cpp command-line binary."""

__version__ = "0.1.0"
