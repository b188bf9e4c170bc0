from __future__ import annotations

import io
from dataclasses import asdict

from flask import Blueprint, abort, current_app, jsonify, request, send_file, url_for
from werkzeug.exceptions import BadRequest

from app.crm.constants import ALL_TAGS_OPTION
from app.crm.modules.segmentation.columns import COLUMN_CATALOG, ColumnVisibility, project_row
from app.crm.modules.segmentation.export import Selection, export_selected
from app.crm.modules.segmentation.models import FilterState, SortKey, ViewState
from app.crm.modules.segmentation.service import build_segment_view
from app.crm.modules.segmentation.store import CustomerCollection
from app.crm.modules.segmentation.tag_editor import InFlightSaves, TagEditor
from app.crm.modules.segmentation.taxonomy import all_tags

bp = Blueprint("segmentation", __name__)

_FILTER_ARGS = ("q", "tag", "tags", "sort", "page_size", "search_tags", "match_on")


def _collection() -> CustomerCollection:
    return current_app.extensions["crm_collection"]


def _new_tag_editor() -> TagEditor:
    client = current_app.extensions["crm_api_client"]
    return TagEditor(submit=client.update_customer, refetch=_collection().refresh)


def _int_arg(name: str, default: int) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be numeric")


def _flag_arg(name: str, default: bool) -> bool:
    raw = (request.args.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _parse_filter_state() -> FilterState:
    try:
        return FilterState(
            search_text=(request.args.get("q") or "").strip(),
            selected_tags=frozenset(t for t in request.args.getlist("tags") if t),
            single_tag=(request.args.get("tag") or "").strip() or ALL_TAGS_OPTION,
            search_in_tags=_flag_arg("search_tags", current_app.config["SEGMENT_SEARCH_IN_TAGS"]),
            match_on=(request.args.get("match_on") or "name").strip().lower(),
        )
    except ValueError as e:
        raise BadRequest(str(e))


def _parse_sort_key() -> SortKey:
    try:
        return SortKey.parse(request.args.get("sort"))
    except ValueError as e:
        raise BadRequest(str(e))


def _parse_view_state() -> ViewState:
    try:
        return ViewState(
            page=_int_arg("page", 1),
            page_size=_int_arg("page_size", current_app.config["SEGMENT_PAGE_SIZE"]),
        )
    except ValueError as e:
        raise BadRequest(str(e))


def _parse_columns() -> ColumnVisibility:
    if "columns" not in request.args:
        return ColumnVisibility()
    try:
        return ColumnVisibility.from_keys(k for k in request.args.getlist("columns") if k)
    except KeyError as e:
        raise BadRequest(str(e))


def _current_view():
    return build_segment_view(
        _collection().records,
        _parse_filter_state(),
        _parse_sort_key(),
        _parse_view_state(),
    )


@bp.get("/segments")
def segments_view():
    view = _current_view()
    columns = _parse_columns()
    page = view.page

    # Carry the filter args through prev/next links; page is recomputed.
    filters_for_urls = {k: request.args.getlist(k) for k in _FILTER_ARGS + ("columns",) if k in request.args}
    prev_url = url_for("segmentation.segments_view", page=page.page - 1, **filters_for_urls) if page.has_prev else None
    next_url = url_for("segmentation.segments_view", page=page.page + 1, **filters_for_urls) if page.has_next else None

    collection = _collection()
    return jsonify(
        {
            "summary": [asdict(t) for t in view.summary],
            "tag_options": [ALL_TAGS_OPTION, *view.tag_options],
            "histogram": [asdict(s) for s in view.histogram],
            "columns": [{"key": k, "label": label, "visible": columns.is_visible(k)} for k, label in COLUMN_CATALOG],
            "customers": [project_row(c, columns) for c in page.items],
            "page": page.page,
            "page_size": page.page_size,
            "total": page.total,
            "total_pages": page.total_pages,
            "has_prev": page.has_prev,
            "has_next": page.has_next,
            "prev_url": prev_url,
            "next_url": next_url,
            "taxonomy": [asdict(t) for t in all_tags()],
            "loaded_at": collection.loaded_at.isoformat() if collection.loaded_at else None,
            "error": collection.last_error,
        }
    )


@bp.get("/segments/export.csv")
def segments_export():
    view = _current_view()
    try:
        selection = Selection(frozenset(int(i) for i in request.args.getlist("ids") if i))
    except ValueError:
        raise BadRequest("ids must be numeric")

    export = export_selected(view.page.items, selection, filename=current_app.config["EXPORT_FILENAME"])
    if export is None:
        return "", 204
    current_app.logger.info("Segment CSV export: rows=%s", export.row_count)
    return send_file(
        io.BytesIO(export.data),
        mimetype=export.content_type,
        as_attachment=True,
        download_name=export.filename,
        max_age=0,
    )


@bp.post("/segments/refresh")
def segments_refresh():
    collection = _collection()
    records = collection.refresh()
    return jsonify({"ok": collection.last_error is None, "count": len(records), "error": collection.last_error})


@bp.post("/segments/customers/<int:customer_id>/tags")
def customer_tags_save(customer_id: int):
    record = _collection().get(customer_id)
    if record is None:
        abort(404)

    body = request.get_json(silent=True) or {}
    slugs = body.get("slugs")
    if not isinstance(slugs, list) or not all(isinstance(s, str) for s in slugs):
        raise BadRequest("slugs must be a list of strings")

    in_flight: InFlightSaves = current_app.extensions["crm_tag_saves"]
    if not in_flight.claim(customer_id):
        return jsonify({"ok": False, "error": "A save is already in progress."}), 409
    try:
        # One session per request; the claim keeps other requests for this
        # customer out until the session is finished.
        editor = _new_tag_editor()
        editor.open(record)
        editor.set_slugs(slugs)
        ok = editor.save()
        error = editor.error
    finally:
        in_flight.release(customer_id)

    if ok:
        return jsonify({"ok": True})
    return jsonify({"ok": False, "error": error}), 502
