"""OpenAI AI provider implementation."""

import logging

from booth_beacon.services.ai.client import AIClient, AIProvider, GenerationResult
from booth_beacon.services.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
MAX_TOKENS = 8192


class OpenAIClient(AIClient):
    """OpenAI GPT AI client."""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Model name (defaults to gpt-4o).
        """
        import openai

        self.client = openai.OpenAI(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    def generate(self, prompt: str) -> GenerationResult:
        """
        Run an extraction prompt through GPT.

        Args:
            prompt: The extraction prompt.

        Returns:
            GenerationResult with the raw response text or error details.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
            )
            raw_response = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            return GenerationResult(
                success=False,
                raw_response="",
                error_message=f"API error: {str(e)}",
            )

        logger.debug(f"Raw AI response: {raw_response[:500]}...")
        return GenerationResult(success=True, raw_response=raw_response)
