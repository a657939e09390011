from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from llama_sidecar.exceptions import InvalidOptionsError

__all__ = ["ModelOptions", "DEFAULT_OPTIONS"]

# Host-side (camelCase) names accepted alongside the field names.
_ALIASES = {
    "topP": "top_p",
    "maxTokens": "max_tokens",
    "contextSize": "context_size",
}


@dataclass(frozen=True)
class ModelOptions:
    """Generation options passed to the inference binary."""

    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 500
    seed: int = 42
    context_size: int = 2048
    streaming: bool = False

    @classmethod
    def merged(
        cls,
        overrides: "ModelOptions | Mapping[str, Any] | None" = None,
        base: "ModelOptions | None" = None,
    ) -> "ModelOptions":
        """
        Merge partial options over a fully populated base record.

        Unknown keys are ignored and ``None`` values keep the base value, so the
        result never has an unset field.
        Raises:
            InvalidOptionsError: A value cannot be converted to its field type.
        """
        base = base or DEFAULT_OPTIONS
        if overrides is None:
            return base
        if isinstance(overrides, ModelOptions):
            return overrides
        if not isinstance(overrides, Mapping):
            raise InvalidOptionsError(f"Model options must be an object, got {type(overrides).__name__}")

        names = {f.name for f in fields(cls)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = _ALIASES.get(key, key)
            if name in names and value is not None:
                changes[name] = value
        try:
            return replace(base, **changes)._coerced()
        except (TypeError, ValueError) as e:
            raise InvalidOptionsError(f"Invalid model options: {e}") from e

    def capped(self, context_size: int | None, max_tokens: int | None) -> "ModelOptions":
        """Return a copy with context size and token budget clamped to the caps."""
        changes: dict[str, Any] = {}
        if context_size is not None:
            changes["context_size"] = min(self.context_size, context_size)
        if max_tokens is not None:
            changes["max_tokens"] = min(self.max_tokens, max_tokens)
        return replace(self, **changes)

    def _coerced(self) -> "ModelOptions":
        return ModelOptions(
            temperature=float(self.temperature),
            top_p=float(self.top_p),
            max_tokens=int(self.max_tokens),
            seed=int(self.seed),
            context_size=int(self.context_size),
            streaming=bool(self.streaming),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "maxTokens": self.max_tokens,
            "seed": self.seed,
            "contextSize": self.context_size,
            "streaming": self.streaming,
        }


DEFAULT_OPTIONS = ModelOptions()
