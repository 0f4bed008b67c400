"""
Text-generation provider abstraction layer.
Supports OpenAI chat completions, Anthropic Claude messages and a local Ollama server.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from payequity.core.config import LLMSettings
from payequity.core.log import get_logger

LOGGER = get_logger(__name__)


class LLMError(Exception):
    """Base class for failures on the text-generation boundary."""


class LLMNotConfiguredError(LLMError):
    """No usable provider (missing API key, disabled, unknown provider)."""


class LLMRequestError(LLMError):
    """Transport failure or non-success HTTP status."""


class LLMTimeoutError(LLMError):
    """The request did not complete within its timeout and was abandoned."""


class LLMResponseError(LLMError):
    """The provider answered but the payload had an unexpected shape."""


@dataclass(frozen=True)
class TextGenerationRequest:
    """Outbound request contract: ``{model, prompt, timeoutMs}``."""

    model: str
    prompt: str
    timeout_ms: int
    system_prompt: str | None = None
    json_mode: bool = False
    temperature: float = 0.1

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class LLMResponse:
    content: str
    model: str
    provider: str
    usage: Dict[str, Any]


class LLMProvider(ABC):
    """Base class for text-generation providers."""

    name: str = "base"

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings

    @abstractmethod
    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        """Send ``request`` and return the raw text response."""
        raise NotImplementedError

    async def _post(
        self,
        url: str,
        *,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float,
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            LOGGER.warning("%s API returned HTTP %s", self.name, exc.response.status_code)
            raise LLMRequestError(
                f"{self.name} request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning("%s API transport error: %s", self.name, exc)
            raise LLMRequestError(f"{self.name} request failed: {exc}") from exc
        except ValueError as exc:
            raise LLMResponseError(f"{self.name} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LLMResponseError(f"{self.name} returned {type(data).__name__}, expected a JSON object")
        return data

    @staticmethod
    def _usage(data: Dict[str, Any]) -> Dict[str, Any]:
        usage = data.get("usage")
        return usage if isinstance(usage, dict) else {}


class ChatGPTProvider(LLMProvider):
    """OpenAI chat completions provider."""

    name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        if not settings.openai_api_key:
            raise LLMNotConfiguredError(
                "OpenAI API key not configured. Set OPENAI_API_KEY environment variable."
            )

    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post(
            self.endpoint,
            headers={
                "Authorization": f"Bearer {self.settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            payload=payload,
            timeout=request.timeout_seconds,
        )
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError("OpenAI response missing choices[0].message.content") from exc
        if not isinstance(content, str):
            raise LLMResponseError("OpenAI message content is not text")
        return LLMResponse(
            content=content,
            model=request.model,
            provider=self.name,
            usage=self._usage(data),
        )


class ClaudeProvider(LLMProvider):
    """Anthropic Claude messages provider."""

    name = "claude"
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        if not settings.claude_api_key:
            raise LLMNotConfiguredError(
                "Claude API key not configured. Set CLAUDE_API_KEY environment variable."
            )

    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        user_content = request.prompt
        if request.json_mode:
            user_content += "\n\nIMPORTANT: Respond with valid JSON only."

        payload: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": self.settings.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": user_content}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        data = await self._post(
            self.endpoint,
            headers={
                "x-api-key": self.settings.claude_api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            payload=payload,
            timeout=request.timeout_seconds,
        )
        blocks = data.get("content") or []
        if not isinstance(blocks, list):
            raise LLMResponseError("Claude response content is not a list of blocks")
        texts = [block.get("text") for block in blocks if isinstance(block, dict)]
        content = "".join(text for text in texts if isinstance(text, str))
        return LLMResponse(
            content=content,
            model=request.model,
            provider=self.name,
            usage=self._usage(data),
        )


class OllamaProvider(LLMProvider):
    """Local Ollama server using the non-streaming generate endpoint."""

    name = "ollama"

    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "stream": False,
            "options": {"temperature": request.temperature},
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.json_mode:
            payload["format"] = "json"

        data = await self._post(
            f"{self.settings.ollama_base_url.rstrip('/')}/api/generate",
            headers={"Content-Type": "application/json"},
            payload=payload,
            timeout=request.timeout_seconds,
        )
        content = data.get("response")
        if not isinstance(content, str):
            raise LLMResponseError("Ollama response missing 'response' text")
        return LLMResponse(content=content, model=request.model, provider=self.name, usage={})


class LLMProviderFactory:
    """Factory to create the configured provider."""

    PROVIDERS: Dict[str, Callable[[LLMSettings], LLMProvider]] = {
        "openai": ChatGPTProvider,
        "claude": ClaudeProvider,
        "ollama": OllamaProvider,
    }

    ALIASES = {
        "chatgpt": "openai",
        "gpt": "openai",
        "anthropic": "claude",
    }

    @staticmethod
    def create(settings: LLMSettings) -> LLMProvider:
        """
        Create a provider instance.

        Raises:
            LLMNotConfiguredError: when the collaborator is disabled, unknown,
                or missing credentials.
        """
        if not settings.enabled:
            raise LLMNotConfiguredError("Text generation is disabled (LLM_ENABLED=0)")

        normalized = (settings.provider or "").strip().lower()
        normalized = LLMProviderFactory.ALIASES.get(normalized, normalized)
        builder: Optional[Callable[[LLMSettings], LLMProvider]] = LLMProviderFactory.PROVIDERS.get(
            normalized
        )
        if builder is None:
            raise LLMNotConfiguredError(f"Unknown LLM provider: {settings.provider}")
        return builder(settings)
