from __future__ import annotations

import pytest

from app.clients.vendor_rules import (
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    VendorEntry,
    classify,
    parse_vendor_entry,
    split_vendor_list,
)


@pytest.mark.parametrize(("keyword", "category"), CATEGORY_RULES)
def test_every_rule_keyword_maps_to_its_category(keyword: str, category: str) -> None:
    assert classify(keyword) == category
    assert classify(f"The {keyword.upper()} Company") == category


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Grand Hall Venue", "venue"),
        ("Best Caterer in Town", "catering"),
        ("Street Food Truck", "catering"),
        ("Lens Photography", "photography"),
        ("Motion Videographer", "videography"),
        ("Bloom Florist", "florals"),
        ("Fresh Flowers", "florals"),
        ("Party Decoration", "decor"),
        ("Jazz Band", "music"),
        ("DJ Spin", "dj"),
        ("Luxury Car Hire", "transportation"),
        ("Seaside Hotel", "accommodation"),
        ("Makeup by Mia", "beauty"),
        ("Hair Studio", "beauty"),
        ("Sweet Cake Co", "bakery"),
        ("Tent Rentals", "rentals"),
        ("Invitation Press", "stationery"),
        ("Fire Dancers Entertainment", "entertainment"),
        ("Officiant Jones", DEFAULT_CATEGORY),
        ("", DEFAULT_CATEGORY),
    ],
)
def test_classify_examples(text: str, expected: str) -> None:
    assert classify(text) == expected


def test_first_matching_rule_wins() -> None:
    # "venue" is listed before "music".
    assert classify("Music Venue") == "venue"
    assert classify("Venue Band") == "venue"


def test_custom_rules_are_honoured() -> None:
    rules = (("lantern", "lighting"),)
    assert classify("Lantern Works", rules) == "lighting"
    assert classify("Lens Photography", rules) == DEFAULT_CATEGORY


def test_parse_category_prefixed_entry() -> None:
    assert parse_vendor_entry("  Photographer:  Lens & Light ") == VendorEntry(
        raw="Photographer:  Lens & Light",
        name="Lens & Light",
        category="photography",
    )


def test_parse_bare_entry_classifies_by_name() -> None:
    assert parse_vendor_entry("Bloom Florist") == VendorEntry(raw="Bloom Florist", name="Bloom Florist", category="florals")


def test_parse_keeps_colons_after_the_first() -> None:
    entry = parse_vendor_entry("Venue: Hall: East Wing")
    assert entry.name == "Hall: East Wing"
    assert entry.category == "venue"


def test_parse_falls_back_to_category_text_when_name_is_empty() -> None:
    entry = parse_vendor_entry("Florist:")
    assert entry.name == "Florist"
    assert entry.category == "florals"


def test_parse_rejects_entries_without_a_name() -> None:
    assert parse_vendor_entry("   ") is None
    assert parse_vendor_entry(" : ") is None


def test_split_vendor_list_drops_blank_entries() -> None:
    assert split_vendor_list("Venue: Hall, , DJ Spin ,") == ["Venue: Hall", "DJ Spin"]
    assert split_vendor_list(None) == []
    assert split_vendor_list("") == []
