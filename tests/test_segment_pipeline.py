"""
Unit tests for the segmentation pipeline.

Tests cover:
- Text search and tag predicates (AND / single-select precedence)
- Stable sorting with missing values last
- Pagination and page clamping
- Summary tiles, histogram and tag option list
"""

from datetime import datetime, timezone

import pytest

from app.crm.modules.segmentation.models import CustomerRecord, FilterState, SortKey, Tag, ViewState
from app.crm.modules.segmentation.service import (
    build_segment_view,
    clamp_page,
    distinct_tag_names,
    filter_customers,
    paginate,
    segment_histogram,
    sort_customers,
    summary_tiles,
    total_pages,
)


def _tag(name: str, slug: str | None = None, category: str | None = None) -> Tag:
    return Tag(name=name, slug=slug or name.lower().replace(" ", "-"), category=category)


def _customer(cid: int, name: str | None = None, **kw) -> CustomerRecord:
    tags = tuple(_tag(t) if isinstance(t, str) else t for t in kw.pop("tags", ()))
    return CustomerRecord(id=cid, name=name, tags=tags, **kw)


@pytest.fixture()
def scenario():
    return [
        _customer(1, "Alice", tags=["Gold Interested"]),
        _customer(2, "Bob", tags=["High-Spending Customer"]),
        _customer(3, "Cara", tags=[]),
    ]


class TestFilter:
    def test_search_is_case_insensitive_substring_on_name(self, scenario):
        result = filter_customers(scenario, FilterState(search_text="a"))
        assert [c.name for c in result] == ["Alice", "Cara"]

    def test_single_tag_filter(self, scenario):
        result = filter_customers(scenario, FilterState(single_tag="Gold Interested"))
        assert [c.name for c in result] == ["Alice"]

    def test_search_matches_email_and_city(self):
        records = [
            _customer(1, "X", email="Someone@Example.com"),
            _customer(2, "Y", city="Mumbai"),
            _customer(3, "Z"),
        ]
        assert [c.id for c in filter_customers(records, FilterState(search_text="example"))] == [1]
        assert [c.id for c in filter_customers(records, FilterState(search_text="MUM"))] == [2]

    def test_missing_fields_never_match_and_never_raise(self):
        records = [_customer(1), _customer(2, "Ann")]
        assert [c.id for c in filter_customers(records, FilterState(search_text="ann"))] == [2]

    def test_search_in_tags_is_opt_in(self, scenario):
        assert filter_customers(scenario, FilterState(search_text="spending")) == []
        result = filter_customers(scenario, FilterState(search_text="spending", search_in_tags=True))
        assert [c.name for c in result] == ["Bob"]

    def test_selected_tags_require_every_tag(self):
        records = [
            _customer(1, "Both", tags=["Gold Interested", "Wedding Buyer", "Referral"]),
            _customer(2, "Gold only", tags=["Gold Interested"]),
            _customer(3, "Wedding only", tags=["Wedding Buyer"]),
        ]
        state = FilterState(selected_tags=frozenset({"Gold Interested", "Wedding Buyer"}))
        assert [c.id for c in filter_customers(records, state)] == [1]

    def test_selected_tags_override_single_tag(self):
        records = [
            _customer(1, tags=["Gold Interested"]),
            _customer(2, tags=["Referral"]),
        ]
        with_single = FilterState(selected_tags=frozenset({"Gold Interested"}), single_tag="Referral")
        without_single = FilterState(selected_tags=frozenset({"Gold Interested"}))
        assert filter_customers(records, with_single) == filter_customers(records, without_single)
        assert [c.id for c in filter_customers(records, with_single)] == [1]

    def test_match_on_slug(self):
        records = [_customer(1, tags=[Tag("Cold Lead", "not-interested")]), _customer(2, tags=["Referral"])]
        state = FilterState(single_tag="not-interested", match_on="slug")
        assert [c.id for c in filter_customers(records, state)] == [1]
        assert filter_customers(records, FilterState(single_tag="not-interested")) == []

    def test_text_and_tag_are_combined(self, scenario):
        state = FilterState(search_text="a", single_tag="Gold Interested")
        assert [c.name for c in filter_customers(scenario, state)] == ["Alice"]

    def test_result_is_subset_in_original_order(self, scenario):
        for state in (
            FilterState(),
            FilterState(search_text="zzz"),
            FilterState(selected_tags=frozenset({"Referral"})),
            FilterState(search_text="a", single_tag="All"),
        ):
            result = filter_customers(scenario, state)
            assert len(result) <= len(scenario)
            assert result == [c for c in scenario if c in result]

    def test_empty_collection(self):
        assert filter_customers([], FilterState(search_text="x")) == []

    def test_invalid_match_on(self):
        with pytest.raises(ValueError):
            FilterState(match_on="category")

    def test_state_helpers_are_immutable(self):
        s = FilterState()
        s2 = s.with_tag_toggled("Referral").with_search("bo")
        assert s.selected_tags == frozenset()
        assert s2.selected_tags == {"Referral"}
        assert s2.with_tag_toggled("Referral").selected_tags == frozenset()
        assert s2.cleared_tags().selected_tags == frozenset()
        assert s2.with_single_tag(None).single_tag == "All"


class TestSort:
    def test_name_sort_is_stable(self):
        records = [_customer(1, "Bob"), _customer(2, "Ann"), _customer(3, "Ann")]
        assert [c.id for c in sort_customers(records, SortKey.NAME)] == [2, 3, 1]

    def test_name_sort_ignores_case_and_accents(self):
        records = [_customer(1, "bob"), _customer(2, "Émile"), _customer(3, "Alice")]
        assert [c.id for c in sort_customers(records, SortKey.NAME)] == [3, 1, 2]

    def test_created_sort_is_most_recent_first(self):
        records = [
            _customer(1, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
            _customer(2, created_at=datetime(2024, 6, 1, tzinfo=timezone.utc)),
            _customer(3),
            _customer(4, created_at=datetime(2024, 3, 1, tzinfo=timezone.utc)),
        ]
        assert [c.id for c in sort_customers(records, SortKey.CREATED)] == [2, 4, 1, 3]

    def test_city_sort_puts_missing_last(self):
        records = [_customer(1, city=None), _customer(2, city="Pune"), _customer(3, city="Delhi"), _customer(4)]
        assert [c.id for c in sort_customers(records, SortKey.CITY)] == [3, 2, 1, 4]

    def test_none_is_identity(self):
        records = [_customer(2, "B"), _customer(1, "A")]
        assert sort_customers(records, SortKey.NONE) == records

    def test_parse(self):
        assert SortKey.parse("") is SortKey.NONE
        assert SortKey.parse(None) is SortKey.NONE
        assert SortKey.parse("name") is SortKey.NAME
        assert SortKey.parse("Created") is SortKey.CREATED
        with pytest.raises(ValueError):
            SortKey.parse("revenue")


class TestPaginate:
    def test_total_pages(self):
        assert total_pages(0, 10) == 0
        assert total_pages(1, 10) == 1
        assert total_pages(25, 10) == 3
        assert total_pages(30, 10) == 3

    def test_pages_cover_every_record_once(self):
        records = [_customer(i, f"C{i}") for i in range(25)]
        pages = [paginate(records, ViewState(page=p, page_size=10)) for p in range(1, 4)]
        assert pages[0].total_pages == 3
        assert len(pages[2].items) == 5
        assert [c for p in pages for c in p.items] == records

    def test_clamp(self):
        assert clamp_page(4, 3) == 3
        assert clamp_page(0, 3) == 1
        assert clamp_page(-5, 0) == 1
        assert clamp_page(2, 0) == 1

    def test_out_of_range_page_is_clamped(self):
        records = [_customer(i) for i in range(25)]
        last = paginate(records, ViewState(page=3))
        assert paginate(records, ViewState(page=4)) == last
        assert paginate(records, ViewState(page=0)) == paginate(records, ViewState(page=1))

    def test_empty(self):
        page = paginate([], ViewState(page=2))
        assert page.items == ()
        assert page.page == 1
        assert page.total_pages == 0
        assert not page.has_prev and not page.has_next

    def test_prev_next(self):
        records = [_customer(i) for i in range(25)]
        page = paginate(records, ViewState(page=2))
        assert page.has_prev and page.has_next
        assert page.ids() == list(range(10, 20))

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ViewState(page_size=0)


class TestAggregate:
    def test_summary_tiles_count_records_per_slug(self):
        records = [
            _customer(1, tags=[Tag("High-Spending Customer", "high-value"), Tag("Needs Follow-up", "needs-follow-up")]),
            _customer(2, tags=[Tag("High-Spending Customer", "high-value")]),
            _customer(3, tags=[Tag("Cold Lead", "not-interested"), Tag("Birthday This Week", "birthday-week")]),
            _customer(4),
        ]
        counts = {t.key: t.count for t in summary_tiles(records)}
        assert counts == {"high_spending": 2, "needs_follow_up": 1, "birthday_this_week": 1, "new_leads": 1}

    def test_histogram_counts_tag_instances_in_first_seen_order(self):
        records = [
            _customer(1, tags=["Referral", "Gold Interested"]),
            _customer(2, tags=["Gold Interested"]),
            _customer(3, tags=["Wedding Buyer", "Referral"]),
        ]
        hist = [(s.name, s.count) for s in segment_histogram(records)]
        assert hist == [("Referral", 2), ("Gold Interested", 2), ("Wedding Buyer", 1)]

    def test_distinct_tag_names_sorted_case_sensitive(self):
        records = [_customer(1, tags=["walk-in", "Referral"]), _customer(2, tags=["Gold Interested", "Referral"])]
        assert distinct_tag_names(records) == ["Gold Interested", "Referral", "walk-in"]

    def test_empty_collection(self):
        assert all(t.count == 0 for t in summary_tiles([]))
        assert segment_histogram([]) == []
        assert distinct_tag_names([]) == []

    def test_tiles_ignore_filter_histogram_follows_it(self):
        records = [
            _customer(1, "Alice", tags=[Tag("High-Spending Customer", "high-value")]),
            _customer(2, "Bob", tags=[Tag("High-Spending Customer", "high-value")]),
        ]
        view = build_segment_view(records, FilterState(search_text="alice"), SortKey.NONE, ViewState())
        assert [c.id for c in view.filtered] == [1]
        assert view.summary[0].count == 2
        assert [(s.name, s.count) for s in view.histogram] == [("High-Spending Customer", 1)]
        assert view.tag_options == ["High-Spending Customer"]
