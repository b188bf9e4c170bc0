from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from app.crm.constants import ALL_TAGS_OPTION, DEFAULT_PAGE_SIZE

TAG_MATCH_FIELDS = ("name", "slug")


@dataclass(frozen=True)
class Tag:
    name: str
    slug: str
    category: str | None = None


@dataclass(frozen=True)
class CustomerRecord:
    id: int
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    address: str | None = None
    community: str | None = None
    created_at: datetime | None = None
    tags: tuple[Tag, ...] = ()

    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    def tag_slugs(self) -> list[str]:
        return [t.slug for t in self.tags]

    def has_tag_slug(self, slug: str) -> bool:
        return any(t.slug == slug for t in self.tags)

    def first_tag_in_category(self, keyword: str) -> Tag | None:
        """First tag whose category contains `keyword` (case-insensitive)."""
        kw = keyword.lower()
        for t in self.tags:
            if t.category and kw in t.category.lower():
                return t
        return None


@dataclass(frozen=True)
class FilterState:
    """
    One filter configuration for the segmentation view.

    `selected_tags` (AND) fully overrides `single_tag` (OR) when non-empty.
    `match_on` picks which tag attribute the tag predicates compare against.
    """

    search_text: str = ""
    selected_tags: frozenset[str] = field(default_factory=frozenset)
    single_tag: str = ALL_TAGS_OPTION
    search_in_tags: bool = False
    match_on: str = "name"

    def __post_init__(self) -> None:
        if self.match_on not in TAG_MATCH_FIELDS:
            raise ValueError(f"match_on must be one of {TAG_MATCH_FIELDS} (got {self.match_on!r}).")
        if not isinstance(self.selected_tags, frozenset):
            object.__setattr__(self, "selected_tags", frozenset(self.selected_tags))

    def with_search(self, text: str) -> FilterState:
        return replace(self, search_text=text or "")

    def with_tag_toggled(self, tag: str) -> FilterState:
        if tag in self.selected_tags:
            return replace(self, selected_tags=self.selected_tags - {tag})
        return replace(self, selected_tags=self.selected_tags | {tag})

    def with_single_tag(self, tag: str | None) -> FilterState:
        return replace(self, single_tag=tag or ALL_TAGS_OPTION)

    def cleared_tags(self) -> FilterState:
        return replace(self, selected_tags=frozenset())


class SortKey(str, Enum):
    NONE = ""
    NAME = "Name"
    CREATED = "Created"
    CITY = "City"

    @classmethod
    def parse(cls, raw: str | None) -> SortKey:
        v = (raw or "").strip().lower()
        if v in ("", "none"):
            return cls.NONE
        for k in cls:
            if k.value.lower() == v:
                return k
        raise ValueError(f"Unknown sort key: {raw!r}")


@dataclass(frozen=True)
class ViewState:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")


class TagEditStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    SAVING = "saving"
    # Still open for retry/cancel, with the last save error surfaced.
    ERROR = "error"
