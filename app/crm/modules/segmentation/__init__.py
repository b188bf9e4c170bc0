"""
Customer Segmentation module.

Scope:
- Filter / sort / paginate an in-memory customer collection
- Summary tiles, per-tag histogram, tag option list
- Column visibility, row selection, CSV export of selected rows
- Tag edit sessions with a negotiated (tag_slugs -> tags) update
"""
