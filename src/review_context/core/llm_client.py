"""LLM completion client for code review using OpenAI or OpenRouter."""

import json
import os
import re
from typing import Any, Literal, Protocol

import httpx
from loguru import logger

from .exceptions import ReviewError

# Type alias for provider
LLMProvider = Literal["openai", "openrouter"]


class CompletionClient(Protocol):
    """The completion interface the review engine depends on."""

    async def complete(
        self, prompt: str, output_schema: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...


def extract_json(text: str) -> Any | None:
    """Pull a JSON payload out of an LLM response.

    Looks for a fenced ```json block first, then any fenced block, then tries
    the whole response. Returns None when nothing parses.
    """
    json_match = re.search(r"```json\s*\n(.*?)\n```", text, re.DOTALL)
    if json_match:
        candidate = json_match.group(1)
    else:
        json_match = re.search(r"```\s*\n(.*?)\n```", text, re.DOTALL)
        candidate = json_match.group(1) if json_match else text.strip()

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        logger.debug(f"LLM response is not JSON: {text[:200]}")
        return None


class LLMClient:
    """Chat-completion client returning ``{"json": ..., "text": ...}``.

    Provider Selection Priority:
    1. Explicit provider parameter
    2. Auto-detect: OpenAI if a key is available, otherwise OpenRouter
    """

    DEFAULT_MODELS = {
        "openai": "gpt-4o-mini",
        "openrouter": "anthropic/claude-3-haiku",
    }

    API_ENDPOINTS = {
        "openai": "https://api.openai.com/v1/chat/completions",
        "openrouter": "https://openrouter.ai/api/v1/chat/completions",
    }

    TIMEOUT_SECONDS = 120.0

    def __init__(
        self,
        model: str | None = None,
        timeout: float = TIMEOUT_SECONDS,
        provider: LLMProvider | None = None,
        openai_api_key: str | None = None,
        openrouter_api_key: str | None = None,
    ) -> None:
        """Initialize LLM client.

        Args:
            model: Model to use (defaults based on provider)
            timeout: Request timeout in seconds
            provider: Explicit provider ('openai' or 'openrouter')
            openai_api_key: OpenAI API key (or OPENAI_API_KEY env var)
            openrouter_api_key: OpenRouter API key (or OPENROUTER_API_KEY env var)

        Raises:
            ValueError: If no API key is found for the selected provider
        """
        self.openai_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        self.openrouter_key = openrouter_api_key or os.environ.get("OPENROUTER_API_KEY")

        if provider:
            self.provider: LLMProvider = provider
            if provider == "openai" and not self.openai_key:
                raise ValueError(
                    "OpenAI provider specified but OPENAI_API_KEY not found."
                )
            if provider == "openrouter" and not self.openrouter_key:
                raise ValueError(
                    "OpenRouter provider specified but OPENROUTER_API_KEY not found."
                )
        elif self.openai_key:
            self.provider = "openai"
        elif self.openrouter_key:
            self.provider = "openrouter"
        else:
            raise ValueError(
                "No API key found. Please set OPENAI_API_KEY or OPENROUTER_API_KEY."
            )

        if self.provider == "openai":
            self.api_key = self.openai_key
            env_model = os.environ.get("OPENAI_MODEL")
        else:
            self.api_key = self.openrouter_key
            env_model = os.environ.get("OPENROUTER_MODEL")
        self.api_endpoint = self.API_ENDPOINTS[self.provider]
        self.model = model or env_model or self.DEFAULT_MODELS[self.provider]
        self.timeout = timeout

        logger.debug(
            f"Initialized LLM client with provider: {self.provider}, "
            f"model: {self.model}"
        )

    async def complete(
        self, prompt: str, output_schema: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send a prompt and return the raw text plus any parsed JSON.

        Args:
            prompt: Full prompt text
            output_schema: Optional JSON schema; when given, the provider is
                asked for a JSON response

        Returns:
            ``{"json": parsed payload or None, "text": raw response text}``

        Raises:
            ReviewError: If the API request fails
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if output_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "review", "schema": output_schema},
            }

        response = await self._chat_completion(payload)
        text = response.get("choices", [{}])[0].get("message", {}).get("content", "")
        return {"json": extract_json(text) if text else None, "text": text}

    async def _chat_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.provider == "openrouter":
            headers["X-Title"] = "Review Context Engine"

        provider_name = self.provider.capitalize()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_endpoint, headers=headers, json=payload
                )
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            logger.error(f"{provider_name} API timeout after {self.timeout}s")
            raise ReviewError(
                f"LLM request timed out after {self.timeout} seconds"
            ) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_msg = f"{provider_name} API error (HTTP {status_code})"
            if status_code == 401:
                error_msg = f"Invalid {provider_name} API key"
            elif status_code == 429:
                error_msg = f"{provider_name} API rate limit exceeded"
            elif status_code >= 500:
                error_msg = f"{provider_name} API server error"

            logger.error(error_msg)
            raise ReviewError(error_msg, context={"status_code": status_code}) from e

        except Exception as e:
            logger.error(f"{provider_name} API request failed: {e}")
            raise ReviewError(f"LLM request failed: {e}") from e
