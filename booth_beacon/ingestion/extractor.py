"""
Fallback Extractor Module
=========================

LLM-backed extraction for sources without a dedicated adapter, or whose
adapter found nothing.

Model output is loosely typed JSON. ``coerce_booths`` is the single place
where it is validated into ``CandidateRecord``s; everything downstream
works on the closed shape. Malformed output and provider failures yield
an empty list, never an exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from booth_beacon.core.enums import BoothStatus, BoothType
from booth_beacon.core.errors import ExtractionError
from booth_beacon.ingestion.adapters.base import CandidateRecord
from booth_beacon.ingestion.retry import RetryPolicy, retry_async
from booth_beacon.services.ai.client import AIClient
from booth_beacon.services.ai.prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_BUDGET = 50_000

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ExtractedBooth(BaseModel):
    """One booth as returned by the model, before conversion to a candidate."""

    model_config = ConfigDict(extra="ignore")

    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = Field(
        default=None, validation_alias=AliasChoices("latitude", "lat")
    )
    longitude: float | None = Field(
        default=None, validation_alias=AliasChoices("longitude", "lng", "lon")
    )
    description: str = ""
    status: BoothStatus = BoothStatus.UNKNOWN
    booth_type: BoothType | None = None

    @field_validator("name", "address", "city", "state", "country", "description", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (str, int, float)) and not isinstance(v, bool):
            return str(v)
        raise ValueError(f"expected text, got {type(v).__name__}")

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def number_or_none(cls, v: Any) -> float | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> BoothStatus:
        return BoothStatus.coerce(v if isinstance(v, str) else None)

    @field_validator("booth_type", mode="before")
    @classmethod
    def coerce_booth_type(cls, v: Any) -> BoothType | None:
        return BoothType.coerce(v if isinstance(v, str) else None)

    def to_candidate(self, source_name: str, source_url: str) -> CandidateRecord:
        return CandidateRecord(
            name=self.name,
            address=self.address,
            city=self.city,
            state=self.state,
            country=self.country,
            latitude=self.latitude,
            longitude=self.longitude,
            description=self.description,
            status=self.status,
            booth_type=self.booth_type,
            source_name=source_name,
            source_url=source_url,
        )


def coerce_booths(payload: Any, source_name: str, source_url: str) -> list[CandidateRecord]:
    """
    Validate a model payload into candidate records.

    Accepts ``{"booths": [...]}`` or a bare list. Items that are not
    objects, or fail validation, are dropped.

    Args:
        payload: Parsed JSON from the model
        source_name: Configured source name
        source_url: URL the content came from

    Returns:
        Candidate records in payload order
    """
    if isinstance(payload, dict):
        items = payload.get("booths")
    else:
        items = payload
    if not isinstance(items, list):
        return []

    candidates = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            booth = ExtractedBooth.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Dropped extracted item from {source_url}: {e.error_count()} error(s)")
            continue
        candidates.append(booth.to_candidate(source_name, source_url))
    return candidates


def parse_json_payload(raw_response: str) -> Any | None:
    """
    Locate and parse the JSON in a model response.

    Strips code fences, then falls back to the outermost object or array
    in the text.

    Returns:
        Parsed JSON, or None when nothing parses
    """
    text = _CODE_FENCE.sub("", raw_response.strip()).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    return None


class FallbackExtractor:
    """
    Extracts candidates from arbitrary page markdown with an LLM.

    The provider call runs in a worker thread and is retried under the
    LLM retry policy. Content beyond ``content_budget`` characters is cut.
    """

    def __init__(
        self,
        ai_client: AIClient,
        content_budget: int = DEFAULT_CONTENT_BUDGET,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.ai_client = ai_client
        self.content_budget = content_budget
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2, backoff_seconds=5.0)
        self._sleep = sleep

    async def extract(
        self,
        content: str,
        source_url: str,
        source_name: str,
    ) -> list[CandidateRecord]:
        """
        Extract candidate records from page content.

        Args:
            content: Page markdown
            source_url: URL the content came from
            source_name: Configured source name

        Returns:
            Candidate records, or an empty list on any failure
        """
        if not content or not content.strip():
            return []

        prompt = build_extraction_prompt(content, source_url, self.content_budget)

        async def call() -> str:
            result = await asyncio.to_thread(self.ai_client.generate, prompt)
            if not result.success:
                raise ExtractionError(result.error_message or "generation failed")
            return result.raw_response

        try:
            raw_response = await retry_async(
                call,
                self.retry_policy,
                retry_on=(ExtractionError,),
                label=f"LLM extraction for {source_url}",
                sleep=self._sleep,
            )
        except ExtractionError as e:
            logger.warning(f"Fallback extraction failed for {source_url}: {e}")
            return []

        payload = parse_json_payload(raw_response)
        if payload is None:
            logger.warning(f"Fallback extraction for {source_url} returned no parseable JSON")
            return []

        candidates = coerce_booths(payload, source_name, source_url)
        logger.info(f"Fallback extraction found {len(candidates)} candidates on {source_url}")
        return candidates
