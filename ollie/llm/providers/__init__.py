"""Provider implementations and a name-based factory."""

from __future__ import annotations

from ollie.llm.providers.base import HttpRequest, Provider, WireDecoder
from ollie.llm.providers.gemini import GeminiProvider
from ollie.llm.providers.ollama import OllamaProvider
from ollie.llm.providers.openai_compat import OpenAICompatProvider

PROVIDERS: dict[str, type[Provider]] = {
    "ollama": OllamaProvider,
    "openai": OpenAICompatProvider,
    "openai-compat": OpenAICompatProvider,
    "gemini": GeminiProvider,
}


def create_provider(name: str, endpoint: str = "", api_key: str = "") -> Provider:
    """
    Instantiate a provider by name.

    An empty *endpoint* selects the provider's default.  Raises ``KeyError``
    for unknown names.
    """
    try:
        cls = PROVIDERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown provider {name!r}. Known: {sorted(PROVIDERS)}"
        ) from None
    if endpoint:
        return cls(endpoint=endpoint, api_key=api_key)
    return cls(api_key=api_key)


__all__ = [
    "GeminiProvider",
    "HttpRequest",
    "OllamaProvider",
    "OpenAICompatProvider",
    "PROVIDERS",
    "Provider",
    "WireDecoder",
    "create_provider",
]
