"""Generation options and their per-provider renderings."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class Options:
    """
    Model behaviour knobs.  Unset (``None``) options are omitted from the
    request so the server default applies.

    Parameters
    ----------
    num_ctx:
        Context window size in tokens.
    temperature:
        Sampling temperature.
    seed:
        Random seed for reproducible output.
    num_predict:
        Maximum number of tokens to generate.
    num_gpu:
        Number of layers to offload to the GPU (Ollama only).
    top_p:
        Nucleus sampling cutoff.
    stop:
        Stop sequences.
    """

    num_ctx: int | None = None
    temperature: float | None = None
    seed: int | None = None
    num_predict: int | None = None
    num_gpu: int | None = None
    top_p: float | None = None
    stop: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.to_ollama()

    def to_ollama(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, [])}

    def to_openai(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.temperature is not None:
            out["temperature"] = self.temperature
        if self.seed is not None:
            out["seed"] = self.seed
        if self.num_predict is not None:
            out["max_tokens"] = self.num_predict
        if self.top_p is not None:
            out["top_p"] = self.top_p
        if self.stop:
            out["stop"] = list(self.stop)
        return out

    def to_gemini(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.temperature is not None:
            out["temperature"] = self.temperature
        if self.seed is not None:
            out["seed"] = self.seed
        if self.num_predict is not None:
            out["maxOutputTokens"] = self.num_predict
        if self.top_p is not None:
            out["topP"] = self.top_p
        if self.stop:
            out["stopSequences"] = list(self.stop)
        return out
