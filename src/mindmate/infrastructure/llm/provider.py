"""
LLM Provider Abstract Interface

Defines the contract for generative model clients used by the
analysis pipeline.

ARCHITECTURE: Providers are constructed once and injected into the
pipeline, so tests can substitute a fake without touching settings.
Providers never retry; a failed call surfaces to the pipeline caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from mindmate.services.analysis.prompt_formatter import AnalysisPrompt


@dataclass
class LLMResponse:
    """
    Raw response from a provider.

    Attributes:
        content: Generated text, unparsed
        model: Model identifier used
        provider: Provider name
        latency_ms: Response time in milliseconds
        usage: Token/eval statistics when the provider reports them
    """

    content: str
    model: str = ""
    provider: str = ""
    latency_ms: int = 0
    usage: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "provider": self.provider,
            "latency_ms": self.latency_ms,
            "usage": self.usage,
        }


class LLMProvider(ABC):
    """
    Abstract generative model client.

    Implementations send one prompt and return the raw text. Parsing
    is the response parser's job.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/tracking."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Get default model identifier."""

    @abstractmethod
    async def generate(self, prompt: AnalysisPrompt) -> LLMResponse:
        """
        Generate a completion for an analysis prompt.

        Raises:
            TransportError: Endpoint unreachable or payload malformed
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Check provider availability."""

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""


class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.original_error = original_error


class TransportError(LLMProviderError):
    """
    The model endpoint could not be used.

    Raised when the endpoint is unreachable, times out, answers with a
    non-success status, or returns a payload without the text field.
    """
