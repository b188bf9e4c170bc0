#!/usr/bin/env python
"""
Segment CSV Export Script

Fetches the customer collection from the CRM API, applies a segment filter
and writes every matching customer to a CSV file (same columns as the
"Export Selected" action in the segmentation view).

Usage:
    # Everyone tagged Gold Interested AND Wedding Buyer, newest first
    python scripts/export_segment.py --tags "Gold Interested" --tags "Wedding Buyer" --sort Created

    # Free-text search including tag names
    python scripts/export_segment.py --q mumbai --search-tags --out mumbai.csv

Environment:
    CRM_API_BASE_URL, CRM_API_TOKEN, CRM_API_TIMEOUT_SECONDS
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, ".")

from dotenv import load_dotenv

from app.crm.config import load_settings
from app.crm.modules.segmentation.client import CrmApiClient
from app.crm.modules.segmentation.export import export_segment
from app.crm.modules.segmentation.models import FilterState, SortKey
from app.crm.modules.segmentation.service import filter_customers, sort_customers
from app.crm.modules.segmentation.store import CustomerCollection


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export a customer segment to CSV")
    parser.add_argument("--q", default="", help="Search name/email/city")
    parser.add_argument("--search-tags", action="store_true", help="Also search tag names")
    parser.add_argument("--tag", default="All", help="Single tag filter (OR)")
    parser.add_argument("--tags", action="append", default=[], help="Required tag (AND); repeatable")
    parser.add_argument("--sort", default="", help="Name, Created or City")
    parser.add_argument("--out", default="segment_customers.csv", help="Output file")
    args = parser.parse_args(argv)

    load_dotenv()
    settings = load_settings()
    client = CrmApiClient(
        base_url=settings.crm_api_base_url,
        token=settings.crm_api_token,
        timeout_seconds=settings.crm_api_timeout_seconds,
    )
    collection = CustomerCollection(client.list_customers)
    records = collection.refresh()
    if collection.last_error:
        print(f"ERROR: {collection.last_error}", file=sys.stderr)
        return 1

    state = FilterState(
        search_text=args.q,
        selected_tags=frozenset(args.tags),
        single_tag=args.tag,
        search_in_tags=args.search_tags,
    )
    segment = sort_customers(filter_customers(records, state), SortKey.parse(args.sort))
    export = export_segment(segment, filename=args.out)
    if export is None:
        print("No customers match; nothing written.")
        return 0

    Path(export.filename).write_bytes(export.data)
    print(f"Wrote {export.row_count} customer(s) to {export.filename}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
