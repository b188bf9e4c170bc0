"""
Segmentation pipeline: filter -> sort -> paginate, plus aggregates.

Every function here is pure and works on an already-loaded collection.
Missing optional fields never raise: they simply don't match a search and
sort after present values.
"""

from __future__ import annotations

import math
import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from app.crm.constants import ALL_TAGS_OPTION, SUMMARY_TILES
from app.crm.modules.segmentation.models import CustomerRecord, FilterState, SortKey, ViewState


@dataclass(frozen=True)
class Page:
    items: tuple[CustomerRecord, ...]
    page: int
    page_size: int
    total: int
    total_pages: int

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def ids(self) -> list[int]:
        return [c.id for c in self.items]


@dataclass(frozen=True)
class SummaryTile:
    key: str
    label: str
    slug: str
    count: int


@dataclass(frozen=True)
class SegmentCount:
    name: str
    count: int


# --- Filter ---------------------------------------------------------------


def _contains(value: str | None, needle: str) -> bool:
    return bool(value) and needle in value.lower()


def matches_search(c: CustomerRecord, search_text: str, *, search_in_tags: bool = False) -> bool:
    s = (search_text or "").lower()
    if not s:
        return True
    if _contains(c.name, s) or _contains(c.email, s) or _contains(c.city, s):
        return True
    if search_in_tags:
        return any(_contains(t.name, s) for t in c.tags)
    return False


def _tag_keys(c: CustomerRecord, match_on: str) -> set[str]:
    if match_on == "slug":
        return set(c.tag_slugs())
    return set(c.tag_names())


def matches_tags(c: CustomerRecord, state: FilterState) -> bool:
    if state.selected_tags:
        return state.selected_tags.issubset(_tag_keys(c, state.match_on))
    if state.single_tag and state.single_tag != ALL_TAGS_OPTION:
        return state.single_tag in _tag_keys(c, state.match_on)
    return True


def filter_customers(records: Iterable[CustomerRecord], state: FilterState) -> list[CustomerRecord]:
    """Records passing the text AND tag predicates, in their original order."""
    return [
        c
        for c in records
        if matches_search(c, state.search_text, search_in_tags=state.search_in_tags) and matches_tags(c, state)
    ]


# --- Sort -----------------------------------------------------------------


def collation_key(value: str) -> tuple[str, str]:
    """
    Locale-style ordering: accents and case are ignored at the primary
    level, the raw value breaks ties.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    primary = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return primary, value


def _text_sort_key(attr: str):
    def key(c: CustomerRecord):
        v = getattr(c, attr)
        if v is None:
            return (1, ("", ""))
        return (0, collation_key(v))

    return key


def _created_sort_key(c: CustomerRecord):
    if c.created_at is None:
        return (1, 0.0)
    return (0, -c.created_at.timestamp())


def sort_customers(records: Sequence[CustomerRecord], key: SortKey) -> list[CustomerRecord]:
    """Stable sort; missing values go last for every key."""
    if key == SortKey.NAME:
        return sorted(records, key=_text_sort_key("name"))
    if key == SortKey.CITY:
        return sorted(records, key=_text_sort_key("city"))
    if key == SortKey.CREATED:
        return sorted(records, key=_created_sort_key)
    return list(records)


# --- Paginate -------------------------------------------------------------


def total_pages(count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    if count <= 0:
        return 0
    return math.ceil(count / page_size)


def clamp_page(page: int, pages: int) -> int:
    return max(1, min(page, max(pages, 1)))


def paginate(records: Sequence[CustomerRecord], view: ViewState) -> Page:
    """
    Slice one page out of an ordered sequence.

    The requested page is clamped into range on every call, so a filter that
    shrinks the result set can never leave the caller on an empty page.
    """
    total = len(records)
    pages = total_pages(total, view.page_size)
    page = clamp_page(view.page, pages)
    start = (page - 1) * view.page_size
    return Page(
        items=tuple(records[start : start + view.page_size]),
        page=page,
        page_size=view.page_size,
        total=total,
        total_pages=pages,
    )


# --- Aggregate ------------------------------------------------------------


def summary_tiles(records: Iterable[CustomerRecord]) -> list[SummaryTile]:
    """Per-slug record counts over the full, unfiltered collection."""
    records = list(records)
    return [
        SummaryTile(key=key, label=label, slug=slug, count=sum(1 for c in records if c.has_tag_slug(slug)))
        for key, label, slug in SUMMARY_TILES
    ]


def segment_histogram(records: Iterable[CustomerRecord]) -> list[SegmentCount]:
    """One count per tag instance, keyed by tag name in first-seen order."""
    counts: dict[str, int] = {}
    for c in records:
        for t in c.tags:
            counts[t.name] = counts.get(t.name, 0) + 1
    return [SegmentCount(name=n, count=cnt) for n, cnt in counts.items()]


def distinct_tag_names(records: Iterable[CustomerRecord]) -> list[str]:
    return sorted({t.name for c in records for t in c.tags})


# --- Composition ----------------------------------------------------------


@dataclass(frozen=True)
class SegmentView:
    filtered: tuple[CustomerRecord, ...]
    page: Page
    summary: list[SummaryTile]
    histogram: list[SegmentCount]
    tag_options: list[str]


def build_segment_view(
    records: Sequence[CustomerRecord],
    state: FilterState,
    sort_key: SortKey,
    view: ViewState,
) -> SegmentView:
    filtered = sort_customers(filter_customers(records, state), sort_key)
    return SegmentView(
        filtered=tuple(filtered),
        page=paginate(filtered, view),
        summary=summary_tiles(records),
        histogram=segment_histogram(filtered),
        tag_options=distinct_tag_names(records),
    )
