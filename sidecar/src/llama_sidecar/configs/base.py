from __future__ import annotations

import yaml
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Type, TypeVar, get_type_hints

T = TypeVar("T", bound="BaseConfig")

__all__ = ["BaseConfig"]


@dataclass
class BaseConfig:
    """Base configuration class with utility methods."""

    @classmethod
    def from_yaml(cls: Type[T], path: str | Path) -> T:
        """Load configuration from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """Create configuration from a dictionary, ignoring unknown keys."""
        hints = get_type_hints(cls)
        kwargs = {}
        for k, v in data.items():
            if k in cls.__dataclass_fields__:
                field_type = hints.get(k)
                # Handle nested BaseConfig
                if (
                    isinstance(field_type, type)
                    and issubclass(field_type, BaseConfig)
                    and isinstance(v, dict)
                ):
                    kwargs[k] = field_type.from_dict(v)
                else:
                    kwargs[k] = v
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary with paths as strings."""
        return {
            k: str(v) if isinstance(v, Path) else v
            for k, v in asdict(self).items()
        }
