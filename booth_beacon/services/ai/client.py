"""AI client interface and provider abstraction."""

import os
from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel

from booth_beacon.core.errors import ConfigurationError


class AIProvider(str, Enum):
    """Supported AI providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


# Environment variable holding each provider's key
API_KEY_ENV_VARS = {
    AIProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
    AIProvider.OPENAI: "OPENAI_API_KEY",
}


class GenerationResult(BaseModel):
    """Result of an AI generation attempt."""

    success: bool
    raw_response: str
    error_message: str | None = None


class AIClient(ABC):
    """Abstract base class for AI providers."""

    provider: AIProvider
    model: str

    @abstractmethod
    def generate(self, prompt: str) -> GenerationResult:
        """
        Send an extraction prompt to the model.

        Args:
            prompt: User prompt; the extraction system prompt is added by the client.

        Returns:
            GenerationResult with the model's raw text or error details.
        """
        pass


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Args:
        provider: The AI provider to use.
        api_key: The API key for the provider.
        model: Optional model name override.

    Returns:
        An AIClient instance for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        provider = AIProvider(provider.lower())

    if provider == AIProvider.ANTHROPIC:
        from booth_beacon.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model)
    elif provider == AIProvider.OPENAI:
        from booth_beacon.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


def get_ai_client_from_env(model: str | None = None) -> AIClient:
    """
    Build the AI client named by AI_PROVIDER (default anthropic).

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing.
    """
    provider_name = os.environ.get("AI_PROVIDER", AIProvider.ANTHROPIC.value)
    try:
        provider = AIProvider(provider_name.lower())
    except ValueError:
        raise ConfigurationError(f"Unsupported AI_PROVIDER: {provider_name}")

    env_var = API_KEY_ENV_VARS[provider]
    api_key = os.environ.get(env_var)
    if not api_key:
        raise ConfigurationError(f"{provider.value} API key not found. Set {env_var} environment variable.")
    return get_ai_client(provider, api_key, model or os.environ.get("AI_MODEL"))
