"""Unit tests for lenient itinerary parsing and rich-text extraction."""

from __future__ import annotations

from app.schemas.itinerary import ActivitySegment, Itinerary, StaySegment
from app.services.ideation.rich_text import extract_text


def test_unknown_segments_are_dropped_and_nulls_tolerated() -> None:
    itinerary = Itinerary.from_document(
        {
            "id": 1,
            "overview": {"countries": ["Kenya", {"country": "Tanzania"}, None], "highlights": None},
            "days": [
                {
                    "dayNumber": "2",
                    "segments": [
                        {"blockType": "stay", "accommodationName": "Angama Mara", "nights": "3"},
                        {"blockType": "video", "url": "https://example.com"},
                        {"blockType": "activity", "title": "Balloon Safari"},
                        "garbage",
                    ],
                },
                {"segments": None},
            ],
            "faqItems": None,
        }
    )

    assert itinerary.overview.country_names == ["Kenya", "Tanzania"]
    segments = itinerary.days[0].segments
    assert [type(s) for s in segments] == [StaySegment, ActivitySegment]
    assert segments[0].nights == 3
    assert itinerary.days[0].day_number == 2
    assert itinerary.days[1].segments == []
    assert itinerary.faq_items == []


def test_display_name_prefers_imported_value() -> None:
    stay = StaySegment.model_validate(
        {"blockType": "stay", "accommodationNameItrvl": " Angama Mara ", "accommodationName": "Angama"}
    )

    assert stay.display_name == "Angama Mara"


def test_extract_text_walks_lexical_tree() -> None:
    document = {
        "root": {
            "type": "root",
            "children": [
                {"type": "paragraph", "children": [{"text": "Five nights "}, {"text": "in the Mara."}]},
                {"type": "list", "children": [{"type": "listitem", "children": [{"text": "Balloon"}]}]},
            ],
        }
    }

    assert extract_text(document) == "Five nights in the Mara.\nBalloon"
    assert extract_text(None) == ""
    assert extract_text({"root": None}) == ""


def test_malformed_prices_and_stray_values_are_tolerated() -> None:
    itinerary = Itinerary.from_document(
        {
            "id": {"$oid": "65f0"},
            "overview": "Kenya in style",
            "days": [{"segments": []}, "Day two", None],
            "investmentLevel": {"fromPrice": "POA", "toPrice": "12,500", "currency": "USD"},
            "faqItems": [{"question": "When to go?"}, 7],
        }
    )

    assert itinerary.id is None
    assert itinerary.overview.country_names == []
    assert len(itinerary.days) == 1
    assert itinerary.investment_level is not None
    assert itinerary.investment_level.from_price is None
    assert itinerary.investment_level.to_price == 12500.0
    assert [item.question for item in itinerary.faq_items] == ["When to go?"]


def test_non_mapping_investment_level_is_dropped() -> None:
    itinerary = Itinerary.from_document({"id": "itn-9", "investmentLevel": "on request"})

    assert itinerary.id == "itn-9"
    assert itinerary.investment_level is None
