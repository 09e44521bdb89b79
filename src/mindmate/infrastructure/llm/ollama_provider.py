"""
Ollama LLM Provider

Client for a local Ollama-style text-generation endpoint
(``POST /api/generate``). This is the default provider: health
signals never leave the deployment.

Request:  {model, prompt, stream: false, options: {temperature, top_p, num_predict}}
Response: {response: "<text>", ...}
"""

import time
from typing import Optional

import httpx

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import LLMSettings
from mindmate.infrastructure.llm.provider import LLMProvider, LLMResponse, TransportError
from mindmate.infrastructure.metrics import track_llm_request
from mindmate.services.analysis.prompt_formatter import AnalysisPrompt

logger = get_logger(__name__)


class OllamaProvider(LLMProvider):
    """
    Local text-generation endpoint provider.

    One attempt per call. The only bound on a request is the transport
    timeout from settings; there is no mid-flight cancellation.

    Usage:
        provider = OllamaProvider(settings.llm)
        response = await provider.generate(prompt)
    """

    def __init__(
        self,
        settings: LLMSettings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            settings: Endpoint, model and decoding options
            client: Pre-built HTTP client (tests pass one with a mock transport)
        """
        self._settings = settings
        self._client = client
        self._owns_client = client is None

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._settings.model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        return self._client

    def _build_payload(self, prompt: AnalysisPrompt) -> dict:
        temperature = prompt.temperature if prompt.temperature is not None else self._settings.temperature
        return {
            "model": self._settings.model,
            "prompt": prompt.text,
            "stream": False,
            "options": {
                "temperature": temperature,
                "top_p": self._settings.top_p,
                "num_predict": prompt.max_tokens or self._settings.max_tokens,
            },
        }

    @track_llm_request("ollama")
    async def generate(self, prompt: AnalysisPrompt) -> LLMResponse:
        """
        Send the prompt and return the raw generated text.

        Raises:
            TransportError: Endpoint unreachable, non-2xx, undecodable
                body, or no ``response`` text field
        """
        client = self._get_client()
        start_time = time.time()

        try:
            resp = await client.post(self._settings.endpoint, json=self._build_payload(prompt))
            resp.raise_for_status()
            payload = resp.json()
        except httpx.TimeoutException as e:
            logger.error("Model endpoint timed out", endpoint=self._settings.endpoint)
            raise TransportError(
                f"Model endpoint timed out after {self._settings.timeout_seconds}s",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Model endpoint returned an error", status_code=status)
            raise TransportError(
                f"Model endpoint error: {status}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Model endpoint unreachable", endpoint=self._settings.endpoint, error=str(e))
            raise TransportError(
                f"Model endpoint unreachable: {e}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except ValueError as e:
            raise TransportError(
                "Model endpoint returned a non-JSON body",
                provider=self.provider_name,
                original_error=e,
            ) from e

        content = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(content, str):
            raise TransportError(
                "Model response payload has no 'response' text field",
                provider=self.provider_name,
            )

        latency_ms = int((time.time() - start_time) * 1000)
        usage = {
            key: payload[key]
            for key in ("prompt_eval_count", "eval_count", "total_duration")
            if key in payload
        }

        logger.debug(
            "Model completion generated",
            model=self._settings.model,
            analysis_type=prompt.analysis_type.value,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=str(payload.get("model") or self._settings.model),
            provider=self.provider_name,
            latency_ms=latency_ms,
            usage=usage,
        )

    async def health_check(self) -> bool:
        """Check that the Ollama server answers on its tags endpoint."""
        tags_url = httpx.URL(self._settings.endpoint).copy_with(path="/api/tags")
        try:
            resp = await self._get_client().get(tags_url)
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Model endpoint health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
