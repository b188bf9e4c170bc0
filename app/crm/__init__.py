import logging

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.crm.config import load_config
from app.crm.routes import bp as routes_bp
from app.crm.modules.segmentation.admin import bp as segmentation_bp
from app.crm.modules.segmentation.client import CrmApiClient
from app.crm.modules.segmentation.store import CustomerCollection
from app.crm.modules.segmentation.tag_editor import InFlightSaves


def create_app(api_client=None, *, load_on_start: bool = True) -> Flask:
    """
    App factory.

    `api_client` is anything with `list_customers()` and
    `update_customer(id, payload)`; defaults to the HTTP client built from
    config.
    """
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if "localhost" in str(app.config.get("CRM_API_BASE_URL") or "localhost"):
            raise RuntimeError("CRM_API_BASE_URL must point at the CRM backend in production.")

    if api_client is None:
        api_client = CrmApiClient(
            base_url=app.config["CRM_API_BASE_URL"],
            token=app.config["CRM_API_TOKEN"],
            timeout_seconds=app.config["CRM_API_TIMEOUT_SECONDS"],
        )
    app.extensions["crm_api_client"] = api_client
    app.extensions["crm_collection"] = CustomerCollection(api_client.list_customers)
    app.extensions["crm_tag_saves"] = InFlightSaves()

    app.register_blueprint(routes_bp)
    app.register_blueprint(segmentation_bp, url_prefix="/admin")

    @app.errorhandler(HTTPException)
    def _err_http(e):  # type: ignore[no-redef]
        return jsonify({"ok": False, "error": e.description}), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500")
        return jsonify({"ok": False, "error": "Internal server error"}), 500

    if load_on_start:
        # Fetch failures degrade to an empty collection; never blocks startup.
        app.extensions["crm_collection"].refresh()

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
