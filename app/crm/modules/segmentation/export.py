"""
Row selection and CSV export for the segmentation view.

Selection is toggled page by page but persists across pages. Export is
scoped to the current page: only selected ids that are also on the page
being viewed are written. Selections made on other pages are not exported.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from app.crm.constants import CSV_CONTENT_TYPE, DEFAULT_EXPORT_FILENAME
from app.crm.modules.segmentation.columns import COLUMN_KEYS, COLUMN_LABELS, ColumnVisibility, column_value
from app.crm.modules.segmentation.models import CustomerRecord

logger = logging.getLogger(__name__)

# Every catalog column except the "expand" affordance
EXPORT_COLUMNS = tuple(k for k in COLUMN_KEYS if k != "expand")


@dataclass(frozen=True)
class Selection:
    ids: frozenset[int] = field(default_factory=frozenset)

    def __contains__(self, customer_id: int) -> bool:
        return customer_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

    def toggle(self, customer_id: int) -> Selection:
        if customer_id in self.ids:
            return Selection(self.ids - {customer_id})
        return Selection(self.ids | {customer_id})

    def toggle_page(self, page_ids: Iterable[int]) -> Selection:
        """
        "Select all" for the current page: clears just the page's ids when
        they are all selected, otherwise adds all of them.
        """
        page_ids = frozenset(page_ids)
        if page_ids and page_ids <= self.ids:
            return Selection(self.ids - page_ids)
        return Selection(self.ids | page_ids)

    def all_selected(self, page_ids: Iterable[int]) -> bool:
        page_ids = frozenset(page_ids)
        return bool(page_ids) and page_ids <= self.ids

    def clear(self) -> Selection:
        return Selection()


@dataclass(frozen=True)
class CsvExport:
    data: bytes
    row_count: int
    filename: str = DEFAULT_EXPORT_FILENAME
    content_type: str = CSV_CONTENT_TYPE


def _export_keys(visibility: ColumnVisibility | None) -> list[str]:
    if visibility is None:
        return list(EXPORT_COLUMNS)
    return [k for k in visibility.visible_keys() if k in EXPORT_COLUMNS]


def csv_rows(records: Iterable[CustomerRecord], *, visibility: ColumnVisibility | None = None) -> list[list[str]]:
    keys = _export_keys(visibility)
    rows = [[COLUMN_LABELS[k] for k in keys]]
    for c in records:
        rows.append([column_value(c, k) or "" for k in keys])
    return rows


def render_csv(records: Sequence[CustomerRecord], *, visibility: ColumnVisibility | None = None) -> str | None:
    """
    CSV text for `records`, or None when there is nothing to write.

    All fields are quoted; rows are separated by a bare newline with no
    trailing terminator.
    """
    if not records:
        return None
    out = io.StringIO()
    w = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    w.writerows(csv_rows(records, visibility=visibility))
    # drop the terminator after the last row
    return out.getvalue()[:-1]


def _to_export(
    records: Sequence[CustomerRecord], *, filename: str, visibility: ColumnVisibility | None
) -> CsvExport | None:
    text = render_csv(records, visibility=visibility)
    if text is None:
        return None
    return CsvExport(data=text.encode("utf-8"), row_count=len(records), filename=filename)


def export_selected(
    page_items: Sequence[CustomerRecord],
    selection: Selection,
    *,
    filename: str = DEFAULT_EXPORT_FILENAME,
    visibility: ColumnVisibility | None = None,
) -> CsvExport | None:
    """Export the selected rows of the current page. No rows -> None."""
    chosen = [c for c in page_items if c.id in selection]
    skipped = len(selection) - len(chosen)
    if skipped:
        logger.info("CSV export: %d selected id(s) are off the current page and were not exported", skipped)
    return _to_export(chosen, filename=filename, visibility=visibility)


def export_segment(
    records: Sequence[CustomerRecord],
    *,
    filename: str = DEFAULT_EXPORT_FILENAME,
    visibility: ColumnVisibility | None = None,
) -> CsvExport | None:
    """Export every record of a (filtered) segment."""
    return _to_export(list(records), filename=filename, visibility=visibility)
