from __future__ import annotations

from dataclasses import dataclass


DEFAULT_CATEGORY = "other"

# Evaluated in order; the first keyword contained in the text decides the category.
CATEGORY_RULES: tuple[tuple[str, str], ...] = (
    ("venue", "venue"),
    ("catering", "catering"),
    ("caterer", "catering"),
    ("food", "catering"),
    ("photo", "photography"),
    ("photography", "photography"),
    ("photographer", "photography"),
    ("video", "videography"),
    ("videography", "videography"),
    ("videographer", "videography"),
    ("floral", "florals"),
    ("florals", "florals"),
    ("florist", "florals"),
    ("flowers", "florals"),
    ("decor", "decor"),
    ("decoration", "decor"),
    ("music", "music"),
    ("band", "music"),
    ("dj", "dj"),
    ("transport", "transportation"),
    ("transportation", "transportation"),
    ("car", "transportation"),
    ("hotel", "accommodation"),
    ("accommodation", "accommodation"),
    ("beauty", "beauty"),
    ("makeup", "beauty"),
    ("hair", "beauty"),
    ("cake", "bakery"),
    ("bakery", "bakery"),
    ("entertainment", "entertainment"),
    ("rentals", "rentals"),
    ("stationery", "stationery"),
    ("invitation", "stationery"),
)


@dataclass(frozen=True, slots=True)
class VendorEntry:
    raw: str
    name: str
    category: str


def classify(text: str, rules: tuple[tuple[str, str], ...] = CATEGORY_RULES) -> str:
    lowered = text.lower()
    for keyword, category in rules:
        if keyword in lowered:
            return category
    return DEFAULT_CATEGORY


def parse_vendor_entry(raw: str) -> VendorEntry | None:
    """Parse ``"Category: Name"`` or a bare ``"Name"``; returns None when no name remains."""
    entry = raw.strip()
    if ":" in entry:
        category_part, _, name_part = entry.partition(":")
        category_part = category_part.strip()
        name = name_part.strip() or category_part
        category = classify(category_part)
    else:
        name = entry
        category = classify(entry)
    if not name:
        return None
    return VendorEntry(raw=entry, name=name, category=category)


def split_vendor_list(text: str | None) -> list[str]:
    if not text:
        return []
    return [entry.strip() for entry in text.split(",") if entry.strip()]
