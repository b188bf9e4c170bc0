from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from app.crm.modules.segmentation.models import CustomerRecord
from app.crm.modules.segmentation.normalize import normalize_collection

logger = logging.getLogger(__name__)


class CustomerCollection:
    """
    The most recently committed customer collection.

    `refresh()` replaces the records wholesale. Readers only ever see a fully
    normalized tuple, never a partially fetched one. A failed fetch degrades
    to an empty collection and records the error.
    """

    def __init__(self, fetch: Callable[[], Any]) -> None:
        self._fetch = fetch
        self._lock = threading.Lock()
        self._records: tuple[CustomerRecord, ...] = ()
        self.loaded_at: datetime | None = None
        self.last_error: str | None = None

    @property
    def records(self) -> tuple[CustomerRecord, ...]:
        return self._records

    def get(self, customer_id: int) -> CustomerRecord | None:
        for c in self._records:
            if c.id == customer_id:
                return c
        return None

    def refresh(self) -> tuple[CustomerRecord, ...]:
        try:
            records = tuple(normalize_collection(self._fetch()))
            error = None
        except Exception as e:
            logger.exception("Customer fetch failed; continuing with an empty collection")
            records = ()
            error = f"Failed to fetch customers: {e}"
        with self._lock:
            self._records = records
            self.last_error = error
            self.loaded_at = datetime.now(timezone.utc)
        logger.info("Customer collection refreshed: %d record(s)", len(records))
        return records
