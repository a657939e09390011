"""Model registry for discovering and selecting GGUF model files."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from ..configs.model import ModelInfo
from ..exceptions import NoMatchError

logger = logging.getLogger(__name__)

MODEL_EXTENSION = ".gguf"
GGUF_MAGIC = b"GGUF"

# Checked in order; longer tags come before their prefixes.
QUANTIZATION_TAGS = (
    "IQ2_XXS", "IQ2_XS", "IQ3_XXS", "IQ3_S", "IQ4_XS", "IQ4_NL",
    "Q2_K",
    "Q3_K_S", "Q3_K_M", "Q3_K_L", "Q3_K",
    "Q4_K_S", "Q4_K_M", "Q4_K", "Q4_0", "Q4_1",
    "Q5_K_S", "Q5_K_M", "Q5_K", "Q5_0", "Q5_1",
    "Q6_K", "Q8_0",
    "BF16", "F16", "F32",
)


def format_size(size: int) -> str:
    """Human-readable byte count, e.g. ``3.8 GB``."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{size} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def detect_quantization(file_name: str) -> str:
    upper = file_name.upper()
    for tag in QUANTIZATION_TAGS:
        if tag in upper:
            return tag
    return "Unknown"


def has_gguf_magic(path: Path) -> bool:
    try:
        with open(path, "rb") as f:
            return f.read(len(GGUF_MAGIC)) == GGUF_MAGIC
    except OSError as e:
        logger.warning("Could not read header of %s: %s", path, e)
        return False


class ModelRegistry:
    """Registry for model files and the currently selected model."""

    def __init__(self, models_dir: Path):
        """
        Initialize the model registry.
        Args:
            models_dir: The directory holding ``.gguf`` model files.
        """
        self.models_dir = Path(models_dir)
        self._active: Path | None = None

    @property
    def active_model(self) -> Path | None:
        return self._active

    def has_models(self) -> bool:
        return bool(self.list_models())

    def list_models(self) -> list[str]:
        """
        List available models.
        Returns:
            Absolute paths of ``.gguf`` files, in directory listing order.
        """
        if not self.models_dir.is_dir():
            return []
        try:
            names = os.listdir(self.models_dir)
        except OSError as e:
            logger.error("Error listing model files: %s", e)
            return []
        directory = self.models_dir.resolve()
        return [
            str(directory / name)
            for name in names
            if name.lower().endswith(MODEL_EXTENSION)
        ]

    def describe_models(self) -> list[ModelInfo]:
        """
        Describe every listed model.

        Files without the GGUF header are reported with ``is_valid=False``
        rather than skipped.
        """
        models = []
        for model_path in self.list_models():
            path = Path(model_path)
            try:
                stat = path.stat()
            except OSError as e:
                logger.warning("Skipping %s: %s", path, e)
                continue
            is_valid = has_gguf_magic(path)
            models.append(
                ModelInfo(
                    name=path.name,
                    path=model_path,
                    size=stat.st_size,
                    formatted_size=format_size(stat.st_size),
                    last_modified=datetime.fromtimestamp(stat.st_mtime),
                    is_valid=is_valid,
                    model_type="GGUF" if is_valid else "Unknown",
                    quantization=detect_quantization(path.name),
                )
            )
        return models

    def resolve(self, name_or_path: str) -> Path:
        """
        Resolve a full path or a file-name substring to a model file.
        Raises:
            NoMatchError: If nothing matches or the match does not exist.
        """
        if not name_or_path:
            raise NoMatchError("No model name or path given")

        candidate = Path(name_or_path).expanduser()
        if candidate.is_file():
            return candidate.resolve()

        needle = name_or_path.lower()
        for model_path in self.list_models():
            path = Path(model_path)
            if needle in path.name.lower():
                if path.is_file():
                    return path
                break
        raise NoMatchError(f"No model matching '{name_or_path}' in {self.models_dir}")

    def load_model(self, name_or_path: str) -> bool:
        """
        Select the active model.
        Args:
            name_or_path: A full path or part of a model's file name.
        Returns:
            True if a model was selected.
        """
        try:
            path = self.resolve(name_or_path)
        except NoMatchError as e:
            logger.warning("%s", e)
            return False
        self._active = path
        logger.info("Active model: %s", path)
        return True

    def unload_model(self) -> bool:
        if self._active is None:
            return False
        logger.info("Unloaded model: %s", self._active)
        self._active = None
        return True
