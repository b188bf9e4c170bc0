import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str

    crm_api_base_url: str
    crm_api_token: str
    crm_api_timeout_seconds: int

    segment_page_size: int
    segment_search_in_tags: bool
    export_filename: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r}).")


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        crm_api_base_url=_getenv("CRM_API_BASE_URL", "http://localhost:8000/api"),
        crm_api_token=_getenv("CRM_API_TOKEN", ""),
        crm_api_timeout_seconds=_getenv_int("CRM_API_TIMEOUT_SECONDS", 30),
        segment_page_size=_getenv_int("SEGMENT_PAGE_SIZE", 10),
        segment_search_in_tags=_getenv_bool("SEGMENT_SEARCH_IN_TAGS", False),
        export_filename=_getenv("EXPORT_FILENAME", "selected_customers.csv"),
    )


def load_config() -> dict:
    s = load_settings()
    if s.segment_page_size < 1:
        raise ValueError("SEGMENT_PAGE_SIZE must be >= 1.")
    if s.crm_api_timeout_seconds < 1:
        raise ValueError("CRM_API_TIMEOUT_SECONDS must be >= 1.")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "CRM_API_BASE_URL": s.crm_api_base_url,
        "CRM_API_TOKEN": s.crm_api_token,
        "CRM_API_TIMEOUT_SECONDS": s.crm_api_timeout_seconds,
        "SEGMENT_PAGE_SIZE": s.segment_page_size,
        "SEGMENT_SEARCH_IN_TAGS": s.segment_search_in_tags,
        "EXPORT_FILENAME": s.export_filename,
    }
