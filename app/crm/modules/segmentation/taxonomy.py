"""
Static tag taxonomy for customer segmentation.

Slugs are the canonical identity; names are display labels.
"""
from __future__ import annotations

import re

from app.crm.modules.segmentation.models import Tag

_TAXONOMY: tuple[Tag, ...] = (
    Tag("Hindu", "hindu", "community"),
    Tag("Muslim", "muslim", "community"),
    Tag("Jain", "jain", "community"),
    Tag("Parsi", "parsi", "community"),
    Tag("Buddhist", "buddhist", "community"),
    Tag("Cross Community", "cross-community", "community"),
    Tag("Anniversary This Week", "anniversary-week", "occasion"),
    Tag("Birthday This Week", "birthday-week", "occasion"),
    Tag("Browsing Prospect", "browsing-prospect", "crm status"),
    Tag("Cold Lead", "not-interested", "crm status"),
    Tag("Converted Customer", "converted-customer", "crm status"),
    Tag("Diamond Interested", "diamond-interested", "product interest"),
    Tag("Gen X (36–45)", "middle-age-shopper", "demographic"),
    Tag("Gifting", "gifting", "purchase intent"),
    Tag("Gold Interested", "gold-interested", "product interest"),
    Tag("Google Search", "google-lead", "lead source"),
    Tag("High-Spending Customer", "high-value", "revenue"),
    Tag("Medium-Spending Customer", "mid-value", "revenue"),
    Tag("Millennial (26–35)", "millennial-shopper", "demographic"),
    Tag("Mixed Buyer", "mixed-buyer", "product interest"),
    Tag("Needs Follow-up", "needs-follow-up", "crm status"),
    Tag("Needs Nurturing", "needs-nurturing", "crm status"),
    Tag("Polki Interested", "polki-interested", "product interest"),
    Tag("Referral", "referral", "lead source"),
    Tag("Repair Customer", "repair-customer", "purchase intent"),
    Tag("Self-purchase", "self-purchase", "purchase intent"),
    Tag("Senior (>46)", "senior-shopper", "demographic"),
    Tag("Unknown/Other", "other-source", "lead source"),
    Tag("Walk-in", "walk-in", "lead source"),
    Tag("Wedding Buyer", "wedding-buyer", "purchase intent"),
    Tag("Young (18–25)", "young-adult", "demographic"),
)

_BY_SLUG = {t.slug: t for t in _TAXONOMY}
_BY_NAME = {t.name: t for t in _TAXONOMY}


def all_tags() -> tuple[Tag, ...]:
    return _TAXONOMY


def tag_for_slug(slug: str) -> Tag | None:
    return _BY_SLUG.get((slug or "").strip())


def tag_for_name(name: str) -> Tag | None:
    return _BY_NAME.get((name or "").strip())


def slugify(name: str) -> str:
    """
    Derive a slug from a display label.

    Examples:
        >>> slugify("Gold Interested")
        'gold-interested'
        >>> slugify("  Senior (>46) ")
        'senior-46'
    """
    s = (name or "").strip().lower()
    return re.sub(r"[^a-z0-9]+", "-", s).strip("-")
