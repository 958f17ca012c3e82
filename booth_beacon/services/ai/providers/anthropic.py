"""Anthropic (Claude) AI provider implementation."""

import logging

from booth_beacon.services.ai.client import AIClient, AIProvider, GenerationResult
from booth_beacon.services.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 8192


class AnthropicClient(AIClient):
    """Anthropic Claude AI client."""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to claude-sonnet-4-20250514).
        """
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    def generate(self, prompt: str) -> GenerationResult:
        """
        Run an extraction prompt through Claude.

        Args:
            prompt: The extraction prompt.

        Returns:
            GenerationResult with the raw response text or error details.
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
            raw_response = "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )
        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            return GenerationResult(
                success=False,
                raw_response="",
                error_message=f"API error: {str(e)}",
            )

        logger.info(f"Extraction received response ({len(raw_response)} chars)")
        logger.debug(f"Raw AI response: {raw_response[:1000]}...")
        return GenerationResult(success=True, raw_response=raw_response)
