"""LLM clients used by the fallback extractor."""

from booth_beacon.services.ai.client import AIClient, AIProvider, GenerationResult, get_ai_client

__all__ = [
    "AIClient",
    "AIProvider",
    "GenerationResult",
    "get_ai_client",
]
