"""
Central constants for the CRM application.
"""
from __future__ import annotations

# Summary tiles on the segmentation view: (key, label, tag slug).
# "not-interested" is the designated cold/new-lead slug.
SUMMARY_TILES = (
    ("high_spending", "High-Spending", "high-value"),
    ("needs_follow_up", "Needs Follow-up", "needs-follow-up"),
    ("birthday_this_week", "Birthday This Week", "birthday-week"),
    ("new_leads", "New Leads", "not-interested"),
)

# Segmentation table columns, in display order: (key, label)
COLUMN_CATALOG = (
    ("name", "Name"),
    ("email", "Email"),
    ("demographic", "Demographic"),
    ("community", "Community"),
    ("status", "Status"),
    ("product", "Product"),
    ("intent", "Intent"),
    ("revenue", "Revenue"),
    ("tags", "Tags"),
    ("expand", "Expand"),
)

# Column key -> tag category keyword (case-insensitive "contains" match)
CATEGORY_COLUMNS = {
    "demographic": "demographic",
    "status": "crm status",
    "product": "product interest",
    "intent": "purchase intent",
    "revenue": "revenue",
}

ALL_TAGS_OPTION = "All"
MISSING_VALUE = "-"
TAG_SEPARATOR = "; "

DEFAULT_PAGE_SIZE = 10
DEFAULT_EXPORT_FILENAME = "selected_customers.csv"
CSV_CONTENT_TYPE = "text/csv"
