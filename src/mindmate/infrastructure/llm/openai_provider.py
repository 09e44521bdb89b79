"""
OpenAI LLM Provider

Implementation of the LLM provider interface for OpenAI and
OpenAI-compatible servers (vLLM, LM Studio, llama.cpp server), selected
with MINDMATE_LLM_PROVIDER=openai.
"""

import time
from typing import Optional

from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import LLMSettings
from mindmate.infrastructure.llm.provider import LLMProvider, LLMResponse, TransportError
from mindmate.infrastructure.metrics import track_llm_request
from mindmate.services.analysis.prompt_formatter import AnalysisPrompt

logger = get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI chat-completions provider.

    The client's own retry loop is disabled: failures surface to the
    pipeline caller as TransportError on the first attempt.

    Usage:
        provider = OpenAIProvider(settings.llm)
        response = await provider.generate(prompt)
    """

    def __init__(self, settings: LLMSettings, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._settings.model

    def is_configured(self) -> bool:
        """Hosted OpenAI needs a key; compatible local servers may not."""
        return bool(self._settings.openai_api_key.get_secret_value() or self._settings.openai_base_url)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.openai_api_key.get_secret_value() or "not-needed",
                base_url=self._settings.openai_base_url,
                timeout=self._settings.timeout_seconds,
                max_retries=0,
            )
        return self._client

    @track_llm_request("openai")
    async def generate(self, prompt: AnalysisPrompt) -> LLMResponse:
        """
        Generate a completion for the prompt.

        Raises:
            TransportError: Connection failure, API error or empty choice
        """
        if not self.is_configured():
            raise TransportError("OpenAI API key not configured", provider=self.provider_name)

        client = self._get_client()
        start_time = time.time()

        try:
            response = await client.chat.completions.create(
                model=self._settings.model,
                messages=prompt.to_messages(),
                max_tokens=prompt.max_tokens or self._settings.max_tokens,
                temperature=prompt.temperature if prompt.temperature is not None else self._settings.temperature,
                top_p=self._settings.top_p,
            )
        except (APIConnectionError, APITimeoutError) as e:
            logger.error("OpenAI endpoint unreachable", error=str(e))
            raise TransportError(
                f"OpenAI endpoint unreachable: {e}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except APIError as e:
            logger.error("OpenAI API error", error=str(e))
            raise TransportError(
                f"OpenAI API error: {e}",
                provider=self.provider_name,
                original_error=e,
            ) from e

        if not response.choices or response.choices[0].message.content is None:
            raise TransportError("OpenAI response has no message content", provider=self.provider_name)

        latency_ms = int((time.time() - start_time) * 1000)
        usage = response.usage.model_dump() if response.usage else {}

        logger.debug(
            "OpenAI completion generated",
            model=self._settings.model,
            tokens=usage.get("total_tokens"),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=response.choices[0].message.content,
            model=response.model or self._settings.model,
            provider=self.provider_name,
            latency_ms=latency_ms,
            usage=usage,
        )

    async def health_check(self) -> bool:
        """Check API availability via the models list."""
        if not self.is_configured():
            return False

        try:
            await self._get_client().models.list()
            return True
        except APIError as e:
            logger.warning("OpenAI health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
