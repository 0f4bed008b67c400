"""Bounded, cancellable access to the text-generation collaborator."""
from __future__ import annotations

import asyncio
from time import perf_counter

from payequity.core.config import LLMSettings
from payequity.core.log import get_logger

from .providers import (
    LLMNotConfiguredError,
    LLMProvider,
    LLMProviderFactory,
    LLMResponse,
    LLMTimeoutError,
    TextGenerationRequest,
)

LOGGER = get_logger(__name__)


class TextGenerationClient:
    """Wrap a provider so every call honours the request's timeout.

    On timeout the in-flight provider coroutine is cancelled by
    ``asyncio.wait_for`` and ``LLMTimeoutError`` is raised immediately.
    """

    def __init__(self, settings: LLMSettings, provider: LLMProvider | None = None) -> None:
        self.settings = settings
        self._provider = provider
        self._provider_error: LLMNotConfiguredError | None = None

    @property
    def model(self) -> str:
        return self.settings.model

    def _resolve_provider(self) -> LLMProvider:
        if self._provider is not None:
            return self._provider
        if self._provider_error is not None:
            raise self._provider_error
        try:
            self._provider = LLMProviderFactory.create(self.settings)
        except LLMNotConfiguredError as exc:
            self._provider_error = exc
            raise
        return self._provider

    def build_request(
        self,
        prompt: str,
        *,
        timeout_seconds: float,
        system_prompt: str | None = None,
        json_mode: bool = False,
        temperature: float = 0.1,
    ) -> TextGenerationRequest:
        return TextGenerationRequest(
            model=self.settings.model,
            prompt=prompt,
            timeout_ms=int(timeout_seconds * 1000),
            system_prompt=system_prompt,
            json_mode=json_mode,
            temperature=temperature,
        )

    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        provider = self._resolve_provider()
        started = perf_counter()
        LOGGER.info(
            "Sending text-generation request (provider=%s, model=%s, timeout=%.0fs)",
            provider.name,
            request.model,
            request.timeout_seconds,
        )
        try:
            response = await asyncio.wait_for(
                provider.generate(request), timeout=request.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            LOGGER.warning(
                "Text-generation request abandoned after %.1fs", perf_counter() - started
            )
            raise LLMTimeoutError(
                f"No response within {request.timeout_seconds:.1f}s"
            ) from exc
        LOGGER.info("Text-generation response received in %.1fs", perf_counter() - started)
        return response
