"""
Photo-to-request suggestions.

The buyer snaps the part they need; a vision model proposes a title, a
vendor-facing description and up to three categories. The suggestion only
pre-fills the request form, so any failure falls back to manual entry.
"""

import base64
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from bazaar.config import get_settings
from bazaar.market.types import MAX_CATEGORIES, Category

from .clean import clean_and_parse_json
from .engine import LLMEngine

logger = structlog.get_logger(__name__)

PROMPT = (
    "Analyze the object in this image to identify it. I am trying to find a "
    "replacement part or a similar item. Respond ONLY with a JSON object "
    'containing "title", "description", and "categories". The title should be '
    "concise. The description should be a detailed technical description for a "
    'vendor. The "categories" field should be an array of up to three most '
    "relevant choices from this list: "
    + ", ".join(f'"{c.value}"' for c in Category)
    + ". Do not include any text, formatting, or code fences outside of the "
    "JSON object."
)


class SuggestionError(Exception):
    """The image could not be turned into request details."""


class SuggestedDetails(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    categories: list[Category] = Field(default_factory=list)

    @field_validator("categories", mode="before")
    @classmethod
    def keep_known_categories(cls, v: Any) -> list[Category]:
        """Drop categories outside the fixed set, then cap the list."""
        if not isinstance(v, list):
            return []
        known: list[Category] = []
        for raw in v:
            try:
                category = Category(raw)
            except ValueError:
                continue
            if category not in known:
                known.append(category)
        return known[:MAX_CATEGORIES]


def _messages(image_bytes: bytes, mime_type: str) -> list[dict[str, Any]]:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                },
                {"type": "text", "text": PROMPT},
            ],
        }
    ]


class ImageSuggester:
    def __init__(self, engine: LLMEngine | None = None):
        if engine is None:
            llm = get_settings().llm
            engine = LLMEngine(
                model=llm.model,
                temperature=llm.temperature,
                api_key=llm.api_key or None,
                timeout=llm.timeout_seconds,
            )
        self.engine = engine

    def suggest(self, image_bytes: bytes, mime_type: str) -> SuggestedDetails:
        """
        Ask the model what the pictured item is.

        Raises:
            SuggestionError: On an empty image, a provider failure or a reply
                that is not a usable suggestion.
        """
        if not image_bytes:
            raise SuggestionError("No image supplied")
        try:
            raw = self.engine.complete(_messages(image_bytes, mime_type))
        except Exception as e:
            logger.error("image_suggestion_failed", stage="completion", error=str(e))
            raise SuggestionError(
                "Failed to analyze image. Please try again."
            ) from e
        return self._parse(raw)

    async def asuggest(self, image_bytes: bytes, mime_type: str) -> SuggestedDetails:
        if not image_bytes:
            raise SuggestionError("No image supplied")
        try:
            raw = await self.engine.acomplete(_messages(image_bytes, mime_type))
        except Exception as e:
            logger.error("image_suggestion_failed", stage="completion", error=str(e))
            raise SuggestionError(
                "Failed to analyze image. Please try again."
            ) from e
        return self._parse(raw)

    def suggest_or_none(
        self, image_bytes: bytes, mime_type: str
    ) -> SuggestedDetails | None:
        """Like :meth:`suggest`, but ``None`` means "fill the form in by hand"."""
        try:
            return self.suggest(image_bytes, mime_type)
        except SuggestionError:
            return None

    @staticmethod
    def _parse(raw: str) -> SuggestedDetails:
        try:
            details = SuggestedDetails.model_validate(clean_and_parse_json(raw))
        except (ValueError, ValidationError) as e:
            logger.error("image_suggestion_failed", stage="parse", error=str(e))
            raise SuggestionError("The model reply was not a usable suggestion") from e
        logger.info(
            "image_suggestion_ready",
            title=details.title,
            categories=[c.value for c in details.categories],
        )
        return details
