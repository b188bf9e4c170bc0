from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.crm.constants import CATEGORY_COLUMNS, COLUMN_CATALOG, MISSING_VALUE, TAG_SEPARATOR
from app.crm.modules.segmentation.models import CustomerRecord

COLUMN_KEYS = tuple(k for k, _ in COLUMN_CATALOG)
COLUMN_LABELS = dict(COLUMN_CATALOG)


def column_value(c: CustomerRecord, key: str) -> str | None:
    """Display value of one semantic column for a record."""
    if key == "name":
        return c.name
    if key == "email":
        return c.email
    if key == "community":
        return c.community or MISSING_VALUE
    if key == "tags":
        return TAG_SEPARATOR.join(c.tag_names())
    if key in CATEGORY_COLUMNS:
        t = c.first_tag_in_category(CATEGORY_COLUMNS[key])
        return t.name if t else MISSING_VALUE
    if key in COLUMN_LABELS:
        # "expand" is a UI affordance with no data behind it
        return None
    raise KeyError(key)


@dataclass(frozen=True)
class ColumnVisibility:
    visible: frozenset[str] = field(default_factory=lambda: frozenset(COLUMN_KEYS))

    @classmethod
    def from_keys(cls, keys) -> ColumnVisibility:
        keys = frozenset(keys)
        unknown = keys - set(COLUMN_KEYS)
        if unknown:
            raise KeyError(f"Unknown column(s): {', '.join(sorted(unknown))}")
        return cls(visible=keys)

    def toggle(self, key: str) -> ColumnVisibility:
        if key not in COLUMN_LABELS:
            raise KeyError(key)
        if key in self.visible:
            return ColumnVisibility(visible=self.visible - {key})
        return ColumnVisibility(visible=self.visible | {key})

    def is_visible(self, key: str) -> bool:
        return key in self.visible

    def visible_keys(self) -> list[str]:
        return [k for k in COLUMN_KEYS if k in self.visible]


def project_row(c: CustomerRecord, visibility: ColumnVisibility) -> dict[str, Any]:
    """Only the visible columns that carry data, keyed by column key."""
    row: dict[str, Any] = {"id": c.id}
    for key in visibility.visible_keys():
        if key == "expand":
            continue
        row[key] = column_value(c, key)
    return row
