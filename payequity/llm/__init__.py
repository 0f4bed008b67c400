"""Text-generation collaborator: providers and the bounded client."""

from .client import TextGenerationClient
from .providers import (
    ChatGPTProvider,
    ClaudeProvider,
    LLMError,
    LLMNotConfiguredError,
    LLMProvider,
    LLMProviderFactory,
    LLMRequestError,
    LLMResponse,
    LLMResponseError,
    LLMTimeoutError,
    OllamaProvider,
    TextGenerationRequest,
)

__all__ = [
    "ChatGPTProvider",
    "ClaudeProvider",
    "LLMError",
    "LLMNotConfiguredError",
    "LLMProvider",
    "LLMProviderFactory",
    "LLMRequestError",
    "LLMResponse",
    "LLMResponseError",
    "LLMTimeoutError",
    "OllamaProvider",
    "TextGenerationClient",
    "TextGenerationRequest",
]
