"""LLM provider abstraction package."""

from mindmate.infrastructure.llm.ollama_provider import OllamaProvider
from mindmate.infrastructure.llm.openai_provider import OpenAIProvider
from mindmate.infrastructure.llm.provider import (
    LLMProvider,
    LLMProviderError,
    LLMResponse,
    TransportError,
)
from mindmate.infrastructure.llm.provider_factory import LLMProviderType, create_llm_provider

__all__ = [
    # Base types
    "LLMProvider",
    "LLMProviderError",
    "LLMResponse",
    "TransportError",
    # Providers
    "OllamaProvider",
    "OpenAIProvider",
    # Factory
    "LLMProviderType",
    "create_llm_provider",
]
