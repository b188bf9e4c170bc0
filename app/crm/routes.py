from flask import Blueprint, current_app

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    collection = current_app.extensions["crm_collection"]
    return {"ok": True, "customers": len(collection.records)}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No backend access, minimal overhead.
    """
    return "ok", 200
