"""Prompt templates for booth extraction."""

import json

PROMPT_VERSION = "1.0"

# JSON Schema for one extracted booth (simplified for AI)
BOOTH_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "booths": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Venue name (bar, shop, museum)"},
                    "address": {"type": "string", "description": "Street address if stated"},
                    "city": {"type": "string"},
                    "state": {"type": "string", "description": "State or region if stated"},
                    "country": {"type": "string"},
                    "latitude": {"type": ["number", "null"]},
                    "longitude": {"type": ["number", "null"]},
                    "description": {"type": "string", "description": "Short description of the booth"},
                    "status": {"type": "string", "enum": ["active", "inactive", "unknown"]},
                    "booth_type": {
                        "type": ["string", "null"],
                        "enum": ["analog", "digital", "chemical", "instant", None],
                    },
                },
                "required": ["name", "city"],
            },
        },
    },
    "required": ["booths"],
}

SYSTEM_PROMPT = """You extract photo booth locations from web pages for a directory of analog photo booths.

Rules:
- Output a single JSON object with a "booths" array and nothing else.
- Only include venues the page says have (or had) a photo booth.
- Never invent addresses, coordinates or cities. Leave unknown fields empty or null.
- Use "inactive" for booths described as removed, closed or broken, "active" for
  booths described as working, and "unknown" otherwise.
- If the page lists no booths, return {"booths": []}."""

EXTRACTION_PROMPT_TEMPLATE = """Extract every photo booth location from the page below.

SOURCE URL: {source_url}

OUTPUT SCHEMA:
{schema}

PAGE CONTENT (markdown{truncated_note}):
---
{content}
---

Respond with the JSON object only."""


def truncate_content(content: str, budget: int) -> tuple[str, bool]:
    """
    Cut content to a character budget.

    Returns:
        Tuple of (content, whether it was truncated)
    """
    if budget <= 0 or len(content) <= budget:
        return content, False
    return content[:budget], True


def build_extraction_prompt(content: str, source_url: str, budget: int = 50_000) -> str:
    """
    Build the extraction prompt for a page.

    Args:
        content: Page markdown.
        source_url: URL the content came from.
        budget: Maximum characters of page content to embed.

    Returns:
        The formatted prompt string.
    """
    text, truncated = truncate_content(content, budget)
    return EXTRACTION_PROMPT_TEMPLATE.format(
        source_url=source_url,
        schema=json.dumps(BOOTH_JSON_SCHEMA, indent=2),
        truncated_note=f", truncated to {budget} characters" if truncated else "",
        content=text,
    )
