from .registry import ModelRegistry

__all__ = ["ModelRegistry"]
