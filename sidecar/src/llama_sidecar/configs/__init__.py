"""Configurations package for the llama sidecar."""

from .base import BaseConfig
from .model import ModelInfo
from .options import DEFAULT_OPTIONS, ModelOptions
from .settings import SidecarConfig

__all__ = [
    "BaseConfig",
    "DEFAULT_OPTIONS",
    "ModelInfo",
    "ModelOptions",
    "SidecarConfig",
]
