from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class ModelInfo:
    """Description of a model file found in the models directory."""

    name: str
    path: str
    size: int
    formatted_size: str
    last_modified: datetime
    is_valid: bool
    model_type: str = "Unknown"
    quantization: str = "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "formattedSize": self.formatted_size,
            "lastModified": self.last_modified.isoformat(),
            "isValid": self.is_valid,
            "modelType": self.model_type,
            "quantization": self.quantization,
        }
