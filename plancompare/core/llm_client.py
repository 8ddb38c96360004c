"""Generative model clients used for quote extraction.

Both clients expose ``generate(prompt, temperature, max_output_tokens)`` and
raise ``ModelError`` subclasses; ``create_llm_client`` picks one from settings.
"""

import asyncio
from typing import Any, Dict, Optional, Union

import httpx
from httpx import HTTPStatusError, TimeoutException
from google import genai
from google.genai import types

from plancompare.core.exceptions import (
    APIClientError,
    APITimeoutError,
    ConfigurationError,
    EmptyModelResponseError,
    ModelError,
    ModelTimeoutError,
)
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


class GeminiClient:
    """Wrapper for Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-pro",
        timeout: int = 300,
        max_retries: int = 1,
        top_k: Optional[int] = 40,
        top_p: Optional[float] = 0.95,
    ):
        """Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name to use
            timeout: Upper bound in seconds for one generation call
            max_retries: Maximum attempts; one means no retry
            top_k: Sampling top-k
            top_p: Sampling top-p
        """
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is not configured")

        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.top_k = top_k
        self.top_p = top_p

        try:
            self.client = genai.Client(api_key=self.api_key)
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise ConfigurationError(f"Failed to initialize Gemini client: {e}", e) from e

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.1,
        max_output_tokens: int = 58192,
    ) -> str:
        """Generate a plain-text completion for ``prompt``.

        Args:
            prompt: Fully rendered prompt
            temperature: Sampling temperature
            max_output_tokens: Output token ceiling

        Returns:
            Generated text response

        Raises:
            ModelTimeoutError: If the call exceeds the configured timeout
            EmptyModelResponseError: If the model returned no text
            ModelError: If generation fails for any other reason
        """
        config = types.GenerateContentConfig(
            temperature=temperature,
            top_k=self.top_k,
            top_p=self.top_p,
            max_output_tokens=max_output_tokens,
            response_mime_type="text/plain",
        )

        last_error: Optional[ModelError] = None
        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self.client.aio.models.generate_content(
                        model=self.model,
                        contents=prompt,
                        config=config,
                    ),
                    timeout=self.timeout,
                )
                text = getattr(response, "text", None)
                if not text:
                    LOGGER.warning("Empty response from Gemini", extra={"model": self.model})
                    raise EmptyModelResponseError("Gemini returned an empty response")

                LOGGER.debug(
                    "Gemini generation completed",
                    extra={"model": self.model, "response_length": len(text)},
                )
                return text

            except asyncio.TimeoutError as e:
                last_error = ModelTimeoutError(f"Gemini call timed out after {self.timeout}s", e)
            except ModelError as e:
                last_error = e
            except Exception as e:
                last_error = ModelError(f"Gemini generation failed: {e}", e)

            LOGGER.warning(
                f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {last_error}"
            )
            if attempt < self.max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        LOGGER.error(f"Gemini generation failed: {last_error}")
        raise last_error


class OpenRouterClient:
    """Chat completions client for OpenRouter.

    Exposes the same ``generate`` interface as GeminiClient. Server errors,
    rate limiting and timeouts are retried with exponential backoff; other
    client errors fail immediately.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 300,
        max_retries: int = 1,
        retry_delay: int = 2,
    ):
        if not api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")

        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``payload`` to the completions endpoint.

        Raises:
            APIClientError: If the request fails after all attempts
            APITimeoutError: If the last attempt timed out
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                try:
                    response = await client.post(self.base_url, headers=headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    status_code = e.response.status_code
                    body = e.response.text[:500]
                    LOGGER.warning(
                        f"OpenRouter HTTP error (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"status_code": status_code, "error_body": body},
                    )
                    # Client errors other than rate limiting are final
                    if 400 <= status_code < 500 and status_code != 429:
                        raise APIClientError(f"API Client Error {status_code}: {body}", e) from e
                    if last_attempt:
                        raise APIClientError(f"API HTTP Error {status_code} after retries", e) from e

                except TimeoutException as e:
                    LOGGER.warning(
                        f"OpenRouter timeout (Attempt {attempt + 1}/{self.max_retries})"
                    )
                    if last_attempt:
                        raise APITimeoutError(
                            f"API Timeout after {self.max_retries} attempts", e
                        ) from e

                except httpx.RequestError as e:
                    raise APIClientError(f"OpenRouter request failed: {e}", e) from e

                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise APIClientError(f"Failed to call OpenRouter after {self.max_retries} attempts")

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.1,
        max_output_tokens: int = 58192,
    ) -> str:
        """Generate a plain-text completion for ``prompt``.

        Raises:
            ModelTimeoutError: If the call times out
            EmptyModelResponseError: If the model returned no text
            ModelError: If the API call fails
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }

        try:
            response = await self._post(payload)
        except APITimeoutError as e:
            raise ModelTimeoutError(f"OpenRouter call timed out: {e}", e) from e
        except APIClientError as e:
            raise ModelError(f"OpenRouter generation failed: {e}", e) from e

        choices = response.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            LOGGER.warning("Empty response from OpenRouter", extra={"model": self.model})
            raise EmptyModelResponseError("OpenRouter returned an empty response")

        return content


LLMClient = Union[GeminiClient, OpenRouterClient]


def create_llm_client(llm_settings) -> LLMClient:
    """Build the model client selected by ``LLM_PROVIDER``.

    Args:
        llm_settings: LLMSettings instance

    Returns:
        A client exposing ``generate(prompt, temperature, max_output_tokens)``

    Raises:
        ConfigurationError: If the provider is unknown or its key is missing
    """
    provider = llm_settings.provider.lower()
    if provider == "gemini":
        return GeminiClient(
            api_key=llm_settings.gemini_api_key,
            model=llm_settings.gemini_model,
            timeout=llm_settings.timeout_seconds,
            max_retries=llm_settings.max_retries,
            top_k=llm_settings.top_k,
            top_p=llm_settings.top_p,
        )
    if provider == "openrouter":
        return OpenRouterClient(
            api_key=llm_settings.openrouter_api_key,
            model=llm_settings.openrouter_model,
            base_url=llm_settings.openrouter_api_url,
            timeout=llm_settings.timeout_seconds,
            max_retries=llm_settings.max_retries,
        )
    raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}")
