from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from app.crm.modules.segmentation.models import CustomerRecord, Tag
from app.crm.modules.segmentation.taxonomy import slugify, tag_for_name, tag_for_slug

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("name", "email", "phone", "city", "address", "community")


def normalize_text(s: Any) -> str | None:
    if s is None:
        return None
    v = str(s).strip()
    return v or None


def unwrap_collection(response: Any) -> list[Any]:
    """
    Accept a bare list, {"results": [...]} or {"data": [...]}.
    Anything else is an empty collection.
    """
    if isinstance(response, list):
        return response
    if isinstance(response, Mapping):
        for key in ("results", "data"):
            items = response.get(key)
            if isinstance(items, list):
                return items
    return []


def parse_created_at(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(raw).strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def parse_id(raw: Any) -> int | None:
    """Integer id, or None for missing, non-integral or non-finite values."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float):
        if not raw.is_integer():
            return None
        return int(raw)
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_tag(raw: Any) -> Tag | None:
    """
    Build a Tag from a mapping or a bare string.

    Missing pieces are filled from the taxonomy; an unknown tag without a
    slug gets one derived from its name.
    """
    if isinstance(raw, str):
        raw = {"slug": raw} if tag_for_slug(raw) else {"name": raw}
    if not isinstance(raw, Mapping):
        return None

    name = normalize_text(raw.get("name"))
    slug = normalize_text(raw.get("slug"))
    category = normalize_text(raw.get("category"))

    known = tag_for_slug(slug) if slug else (tag_for_name(name) if name else None)
    if not slug:
        slug = known.slug if known else slugify(name or "")
    if not slug:
        return None
    if not name:
        name = known.name if known else slug
    if category is None and known is not None:
        category = known.category
    return Tag(name=name, slug=slug, category=category)


def _parse_tags(raw: Any) -> tuple[Tag, ...]:
    if not isinstance(raw, list):
        return ()
    seen: set[str] = set()
    out: list[Tag] = []
    for item in raw:
        t = parse_tag(item)
        if t is None or t.slug in seen:
            continue
        seen.add(t.slug)
        out.append(t)
    return tuple(out)


def parse_customer(raw: Any) -> CustomerRecord | None:
    if not isinstance(raw, Mapping):
        return None
    cid = parse_id(raw.get("id"))
    if cid is None:
        logger.warning("Dropping customer without a usable id: id=%r", raw.get("id"))
        return None

    fields = {k: normalize_text(raw.get(k)) for k in _TEXT_FIELDS}
    return CustomerRecord(
        id=cid,
        created_at=parse_created_at(raw.get("created_at") or raw.get("createdAt")),
        tags=_parse_tags(raw.get("tags")),
        **fields,
    )


def normalize_collection(response: Any) -> list[CustomerRecord]:
    """Adapt any supported response envelope into an ordered list of records."""
    records: list[CustomerRecord] = []
    for raw in unwrap_collection(response):
        rec = parse_customer(raw)
        if rec is not None:
            records.append(rec)
    return records
