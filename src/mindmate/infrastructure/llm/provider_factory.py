"""
LLM Provider Factory

Builds the configured provider. The application builds one provider at
startup and injects it into the pipeline; nothing else calls this.

CONFIGURATION:
    MINDMATE_LLM_PROVIDER=ollama  # or: openai
"""

from enum import StrEnum

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import LLMSettings
from mindmate.infrastructure.llm.provider import LLMProvider

logger = get_logger(__name__)


class LLMProviderType(StrEnum):
    """Supported LLM provider types."""

    OLLAMA = "ollama"
    OPENAI = "openai"


def create_llm_provider(settings: LLMSettings) -> LLMProvider:
    """
    Create the provider selected by ``settings.provider``.

    Raises:
        ValueError: If the provider type is unknown
    """
    provider_type = LLMProviderType(settings.provider)

    if provider_type == LLMProviderType.OLLAMA:
        from mindmate.infrastructure.llm.ollama_provider import OllamaProvider
        provider: LLMProvider = OllamaProvider(settings)
    elif provider_type == LLMProviderType.OPENAI:
        from mindmate.infrastructure.llm.openai_provider import OpenAIProvider
        provider = OpenAIProvider(settings)
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")

    logger.info(
        "LLM provider initialized",
        provider=provider_type.value,
        model=provider.default_model,
    )
    return provider
