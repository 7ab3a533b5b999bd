"""Build LLM providers from settings."""

from typing import Optional

from config.settings import settings

from .base import BaseLLM
from .ollama_provider import OllamaProvider

_PROVIDERS: dict[str, type[BaseLLM]] = {
    "ollama": OllamaProvider,
}


def _provider_defaults(provider: str) -> dict:
    defaults = {
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
        "timeout": settings.llm_timeout_seconds,
    }
    if provider == "ollama":
        defaults.update(model=settings.ollama_model, base_url=settings.ollama_base_url)
    return defaults


def create_llm(provider: Optional[str] = None, model: Optional[str] = None, **overrides) -> BaseLLM:
    """Create a provider instance; unset or None overrides fall back to settings.

    Raises:
        ValueError: for an unknown provider name.
    """
    provider = provider or settings.default_llm_provider
    llm_cls = _PROVIDERS.get(provider)
    if llm_cls is None:
        raise ValueError(f"Unknown provider: {provider}. Available: {list_providers()}")

    params = _provider_defaults(provider)
    if model:
        params["model"] = model
    params.update({k: v for k, v in overrides.items() if v is not None})
    return llm_cls(**params)


def list_providers() -> list[str]:
    return list(_PROVIDERS)
