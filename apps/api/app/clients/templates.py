"""Wedding-type keyed planning templates.

Budget rows are ``(category, item, segment, percentage)``; every template sums to 100.
Timeline rows are ``(title, description, start "HH:MM", duration minutes, location)``
where a location of ``VENUE`` resolves to the client's venue.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal


TEMPLATE_VERSION = "2025.12"
DEFAULT_WEDDING_TYPE = "traditional"
WEDDING_TYPES = ("traditional", "destination", "intimate", "elopement", "multi_day", "cultural")
VENUE = object()

_CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class BudgetAllocation:
    category: str
    item: str
    segment: str
    percentage: int


@dataclass(frozen=True, slots=True)
class BudgetLine:
    category: str
    item: str
    segment: str
    percentage: int
    estimated_cost: Decimal


@dataclass(frozen=True, slots=True)
class TimelineSlot:
    title: str
    description: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    location: str | None


def _allocations(*rows: tuple[str, str, str, int]) -> tuple[BudgetAllocation, ...]:
    return tuple(BudgetAllocation(*row) for row in rows)


BUDGET_TEMPLATES: dict[str, tuple[BudgetAllocation, ...]] = {
    "traditional": _allocations(
        ("venue", "Venue & Rentals", "vendors", 40),
        ("catering", "Catering & Bar", "vendors", 25),
        ("photography", "Photography", "vendors", 10),
        ("videography", "Videography", "vendors", 5),
        ("florals", "Florals & Decor", "vendors", 8),
        ("music", "Music & Entertainment", "artists", 5),
        ("attire", "Attire & Beauty", "other", 4),
        ("stationery", "Invitations & Stationery", "creatives", 3),
    ),
    "destination": _allocations(
        ("venue", "Venue & Rentals", "vendors", 25),
        ("catering", "Catering & Bar", "vendors", 15),
        ("photography", "Photography", "vendors", 8),
        ("videography", "Videography", "vendors", 4),
        ("florals", "Florals & Decor", "vendors", 6),
        ("music", "Music & Entertainment", "artists", 4),
        ("travel", "Travel & Logistics", "travel", 20),
        ("accommodation", "Guest Accommodations", "accommodation", 15),
        ("stationery", "Invitations & Stationery", "creatives", 3),
    ),
    "intimate": _allocations(
        ("venue", "Venue & Rentals", "vendors", 35),
        ("catering", "Catering & Bar", "vendors", 30),
        ("photography", "Photography", "vendors", 15),
        ("florals", "Florals & Decor", "vendors", 10),
        ("attire", "Attire & Beauty", "other", 7),
        ("stationery", "Invitations & Stationery", "creatives", 3),
    ),
    "elopement": _allocations(
        ("photography", "Photography", "vendors", 30),
        ("venue", "Venue/Location", "vendors", 20),
        ("attire", "Attire & Beauty", "other", 20),
        ("travel", "Travel & Logistics", "travel", 20),
        ("officiant", "Officiant", "vendors", 5),
        ("florals", "Florals", "vendors", 5),
    ),
    "multi_day": _allocations(
        ("venue", "Venues (Multiple)", "vendors", 30),
        ("catering", "Catering (Multiple Events)", "vendors", 20),
        ("photography", "Photography", "vendors", 10),
        ("videography", "Videography", "vendors", 5),
        ("florals", "Florals & Decor", "vendors", 8),
        ("music", "Music & Entertainment", "artists", 7),
        ("accommodation", "Guest Accommodations", "accommodation", 12),
        ("stationery", "Invitations & Stationery", "creatives", 3),
        ("other", "Miscellaneous", "other", 5),
    ),
    "cultural": _allocations(
        ("venue", "Venue & Rentals", "vendors", 30),
        ("catering", "Catering & Bar", "vendors", 20),
        ("photography", "Photography", "vendors", 8),
        ("videography", "Videography", "vendors", 5),
        ("florals", "Florals & Decor", "vendors", 8),
        ("music", "Music & Entertainment", "artists", 8),
        ("attire", "Traditional Attire & Jewelry", "other", 10),
        ("cultural", "Cultural Ceremonies & Rituals", "vendors", 8),
        ("stationery", "Invitations & Stationery", "creatives", 3),
    ),
}


TIMELINE_TEMPLATES: dict[str, tuple[tuple[str, str, str, int, object], ...]] = {
    "traditional": (
        ("Bride Getting Ready", "Hair, makeup, and dress", "09:00", 180, "Bridal Suite"),
        ("Groom Getting Ready", "Suit and preparation", "11:00", 120, "Groom Suite"),
        ("First Look (Optional)", "Private moment before ceremony", "13:00", 30, VENUE),
        ("Wedding Party Photos", "Bridesmaids, groomsmen, family", "13:30", 90, VENUE),
        ("Ceremony", "Exchange of vows", "16:00", 45, VENUE),
        ("Cocktail Hour", "Drinks and appetizers", "17:00", 60, VENUE),
        ("Reception Entrance", "Grand entrance announcement", "18:00", 15, VENUE),
        ("First Dance", "Couple's first dance", "18:15", 5, VENUE),
        ("Dinner Service", "Main meal", "18:30", 90, VENUE),
        ("Speeches & Toasts", "Best man, maid of honor, parents", "20:00", 30, VENUE),
        ("Cake Cutting", "Traditional cake cutting", "20:30", 15, VENUE),
        ("Dancing & Party", "Open dance floor", "20:45", 135, VENUE),
        ("Last Dance & Send Off", "Final dance and farewell", "23:00", 30, VENUE),
    ),
    "destination": (
        ("Welcome Breakfast", "Meet & greet with guests", "09:00", 120, "Hotel Restaurant"),
        ("Bride Getting Ready", "Hair, makeup, and dress", "12:00", 180, "Bridal Suite"),
        ("Groom Getting Ready", "Suit and preparation", "14:00", 120, "Groom Suite"),
        ("Ceremony", "Beach/destination ceremony", "17:00", 45, VENUE),
        ("Sunset Photos", "Couple photos during golden hour", "17:45", 45, VENUE),
        ("Reception Dinner", "Outdoor reception", "19:00", 180, VENUE),
        ("Dancing Under Stars", "Evening celebration", "22:00", 120, VENUE),
    ),
    "intimate": (
        ("Getting Ready Together", "Couple preparation", "11:00", 180, None),
        ("Ceremony", "Intimate vow exchange", "15:00", 30, VENUE),
        ("Photos", "Couple and small group photos", "15:30", 60, VENUE),
        ("Intimate Dinner", "Private dinner celebration", "17:00", 180, VENUE),
    ),
    "elopement": (
        ("Getting Ready", "Couple preparation", "08:00", 120, None),
        ("Travel to Location", "Journey to ceremony spot", "10:00", 60, None),
        ("Private Ceremony", "Just the two of you", "11:00", 30, VENUE),
        ("Adventure Photos", "Exploration and photos", "11:30", 180, VENUE),
        ("Celebration Dinner", "Private dinner", "18:00", 120, None),
    ),
    "multi_day": (
        ("Day 1: Welcome Event", "Guest arrival and welcome party", "18:00", 180, "Welcome Venue"),
        ("Day 2: Pre-Wedding Ceremonies", "Traditional ceremonies", "10:00", 480, None),
        ("Day 3: Main Wedding", "Main ceremony and reception", "16:00", 420, VENUE),
        ("Day 4: Farewell Brunch", "Guest farewell", "10:00", 180, None),
    ),
    "cultural": (
        ("Religious/Cultural Ceremony", "Traditional ceremony", "10:00", 120, VENUE),
        ("Traditional Lunch", "Cultural meal with family", "12:30", 150, None),
        ("Bride Getting Ready", "Traditional attire preparation", "15:00", 180, "Bridal Suite"),
        ("Groom Getting Ready", "Traditional attire preparation", "16:00", 120, "Groom Suite"),
        ("Reception Ceremony", "Evening celebration ceremony", "18:30", 60, VENUE),
        ("Reception & Dinner", "Celebration dinner", "19:30", 180, VENUE),
        ("Cultural Performances", "Traditional music and dance", "22:30", 90, VENUE),
    ),
}


def resolve_wedding_type(wedding_type: str | None) -> str:
    if wedding_type in BUDGET_TEMPLATES:
        return wedding_type
    return DEFAULT_WEDDING_TYPE


def expand_budget(wedding_type: str | None, total: Decimal) -> list[BudgetLine]:
    """Split ``total`` across the wedding type's allocations, rounded half-up to cents."""
    allocations = BUDGET_TEMPLATES[resolve_wedding_type(wedding_type)]
    return [
        BudgetLine(
            category=allocation.category,
            item=allocation.item,
            segment=allocation.segment,
            percentage=allocation.percentage,
            estimated_cost=(total * allocation.percentage / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP),
        )
        for allocation in allocations
    ]


def build_timeline(wedding_type: str | None, wedding_date: date, venue: str | None) -> list[TimelineSlot]:
    slots: list[TimelineSlot] = []
    for title, description, start, duration, location in TIMELINE_TEMPLATES[resolve_wedding_type(wedding_type)]:
        start_time = datetime.combine(wedding_date, time.fromisoformat(start), tzinfo=timezone.utc)
        slots.append(
            TimelineSlot(
                title=title,
                description=description,
                start_time=start_time,
                end_time=start_time + timedelta(minutes=duration),
                duration_minutes=duration,
                location=(venue or None) if location is VENUE else location,
            )
        )
    return slots
