"""Generate article candidates from an itinerary with a language model."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from pydantic import ValidationError

from app.core.exceptions import ModelOutputError
from app.integrations.language_model import ChatMessage, ModelResponse
from app.integrations.vector_search import SimilaritySearcher
from app.schemas.ideation import RawCandidate
from app.schemas.itinerary import ActivitySegment, Itinerary, StaySegment
from app.services.ideation.rich_text import extract_text

logger = logging.getLogger(__name__)

EXISTING_CONTENT_TOP_K = 5
EXISTING_CONTENT_MIN_SCORE = 0.4
OVERVIEW_EXCERPT_LENGTH = 500
STAY_EXCERPT_LENGTH = 300
EXISTING_EXCERPT_LENGTH = 200

SYSTEM_PROMPT = """You are the content strategist for a luxury African safari travel company serving high-net-worth US travellers. Generate article candidates from safari itineraries.

ARTICLE TYPES:
- itinerary_cluster: Destination deep-dives, experience preparation, wildlife and ecology, cultural and historical context, practical logistics, comparison and decision support. These link strongly to the source itinerary.
- authority: Science-to-field translation, industry analysis, debunking, policy and operations. These build topical authority.

RULES:
- Generate 10-15 candidates in total, mixing both types
- Each must have a specific angle that differentiates it from generic safari content
- Titles should be search-optimised
- Do NOT generate content about topics already well covered by the existing site content listed below
- Do NOT generate generic "Top 10 things to do in X" listicles
- Do NOT generate content comparing specific lodges against each other
- Every candidate must connect to at least one destination or property from the itinerary

TARGET AUDIENCE: High-net-worth US individuals planning luxury safaris ($25,000-$100,000+)

Respond with ONLY a JSON array of candidates matching this schema:
[
  {
    "title": "string",
    "contentType": "itinerary_cluster" or "authority",
    "briefSummary": "2-3 sentence summary of what this article covers and why it matters",
    "targetAngle": "The specific angle that makes this different from competitors",
    "targetAudience": ["customer"],
    "destinations": ["Country or region name"],
    "properties": ["Property name if relevant"],
    "species": ["wildlife species if relevant"],
    "freshnessCategory": "monthly" | "quarterly" | "annual" | "evergreen",
    "competitiveNotes": "Brief note on what competitors have published on this topic"
  }
]

No preamble, no markdown fences, no explanation. ONLY the JSON array."""


class ModelClient(Protocol):
    async def call(
        self,
        purpose: str,
        messages: list[ChatMessage],
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ModelResponse: ...


def _format_price(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def build_itinerary_summary(itinerary: Itinerary) -> str:
    """Plain-text summary of the itinerary for the user prompt."""
    parts: list[str] = []

    if itinerary.title:
        parts.append(f"Title: {itinerary.title}")

    overview = itinerary.overview
    if overview.nights:
        parts.append(f"Duration: {overview.nights} nights")
    if overview.country_names:
        parts.append(f"Countries: {', '.join(overview.country_names)}")
    overview_text = extract_text(overview.summary)
    if overview_text:
        parts.append(f"Overview: {overview_text[:OVERVIEW_EXCERPT_LENGTH]}")
    highlights = [item.highlight for item in overview.highlights if item.highlight]
    if highlights:
        parts.append(f"Highlights: {'; '.join(highlights)}")

    investment = itinerary.investment_level
    if investment is not None and investment.from_price:
        currency = investment.currency or "USD"
        line = f"Investment: From {currency} {_format_price(investment.from_price)}"
        if investment.to_price:
            line += f" to {currency} {_format_price(investment.to_price)}"
        parts.append(f"{line} per person")

    stays: list[str] = []
    activities: list[str] = []
    for day in itinerary.days:
        for segment in day.segments:
            if isinstance(segment, StaySegment):
                line = segment.display_name or "Unknown property"
                if segment.location:
                    line += f", {segment.location}"
                if segment.country:
                    line += f" ({segment.country})"
                if segment.nights:
                    line += f", {segment.nights} nights"
                description = extract_text(segment.description)
                if description:
                    line += f"\n  {description[:STAY_EXCERPT_LENGTH]}"
                stays.append(line)
            elif isinstance(segment, ActivitySegment) and segment.display_title:
                activities.append(segment.display_title)

    if stays:
        parts.append("\nAccommodations:\n" + "\n".join(f"- {stay}" for stay in stays))
    if activities:
        parts.append("\nActivities:\n" + "\n".join(f"- {title}" for title in activities))

    questions = [item.question for item in itinerary.faq_items if item.question]
    if questions:
        parts.append("\nFAQ Questions:\n" + "\n".join(f"- {q}" for q in questions))

    return "\n".join(parts)


def strip_code_fences(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        cleaned = cleaned[first_newline + 1 :] if first_newline != -1 else cleaned[3:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def parse_candidates(content: str) -> list[RawCandidate]:
    """Parse the model's JSON array, keeping only items that validate.

    Raises:
        ModelOutputError: If the text is not a JSON array.
    """
    try:
        parsed = json.loads(strip_code_fences(content))
    except ValueError as e:
        raise ModelOutputError(
            f"Model response is not valid JSON: {e}",
            details={"raw_excerpt": content[:500]},
        ) from e

    if not isinstance(parsed, list):
        raise ModelOutputError("Model response is not a JSON array")

    candidates: list[RawCandidate] = []
    for item in parsed:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object candidate")
            continue
        try:
            candidates.append(RawCandidate.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid candidate",
                extra={"title": item.get("title") or "no title", "errors": e.error_count()},
            )
    return candidates


class CandidateGenerator:
    """Prompt the ideation model with the itinerary and existing site content."""

    def __init__(self, model: ModelClient, search: SimilaritySearcher) -> None:
        self.model = model
        self.search = search

    async def existing_content(self, itinerary: Itinerary) -> list[str]:
        snippets: list[str] = []
        for country in itinerary.overview.country_names:
            try:
                matches = await self.search.search(
                    country,
                    top_k=EXISTING_CONTENT_TOP_K,
                    min_score=EXISTING_CONTENT_MIN_SCORE,
                )
            except Exception as e:
                logger.warning(
                    "Existing content search failed",
                    extra={"country": country, "error": str(e)},
                )
                continue
            snippets.extend(
                f"[{match.chunk_type}] {match.text[:EXISTING_EXCERPT_LENGTH]}"
                for match in matches
            )
        return snippets

    async def generate(self, itinerary: Itinerary | dict[str, Any]) -> list[RawCandidate]:
        document = Itinerary.from_document(itinerary)
        existing = await self.existing_content(document)
        existing_block = (
            "\n".join(existing)
            if existing
            else "No existing content found for these destinations."
        )
        user_message = (
            f"ITINERARY SUMMARY:\n{build_itinerary_summary(document)}\n\n"
            f"EXISTING SITE CONTENT (avoid duplicating these topics):\n{existing_block}\n\n"
            "Generate 10-15 article candidates based on this itinerary."
        )

        response = await self.model.call(
            "ideation",
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            max_tokens=4096,
            temperature=0.8,
        )

        try:
            candidates = parse_candidates(response.text)
        except ModelOutputError as e:
            logger.warning(
                "Discarding unparseable model output",
                extra={"itinerary_id": document.id, "error": e.message, **e.details},
            )
            return []

        logger.info(
            "Candidates generated",
            extra={"itinerary_id": document.id, "candidates": len(candidates)},
        )
        return candidates
