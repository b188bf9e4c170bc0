"""
Tag edit session with a negotiated update.

The backend's field name for tag assignment is not known up front, so a
save first sends {"tag_slugs": [...]} and, if that fails for any reason,
retries exactly once with {"tags": [...]}. Success closes the session and
re-fetches the whole collection; nothing is patched locally.

States: CLOSED -> OPEN -> SAVING -> CLOSED (success) | ERROR (both failed).
ERROR is still an open session: toggle, save again, or cancel.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from app.crm.modules.segmentation.models import CustomerRecord, TagEditStatus

logger = logging.getLogger(__name__)

PREFERRED_FIELD = "tag_slugs"
FALLBACK_FIELD = "tags"


class TagEditStateError(RuntimeError):
    pass


class InFlightSaves:
    """
    Customer ids with a tag save in progress, shared across request threads.

    Only ids currently being saved are held; a released id is forgotten.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: set[int] = set()

    def claim(self, customer_id: int) -> bool:
        with self._lock:
            if customer_id in self._ids:
                return False
            self._ids.add(customer_id)
            return True

    def release(self, customer_id: int) -> None:
        with self._lock:
            self._ids.discard(customer_id)

    def __contains__(self, customer_id: int) -> bool:
        with self._lock:
            return customer_id in self._ids


class TagEditor:
    def __init__(
        self,
        submit: Callable[[int, dict[str, Any]], Any],
        refetch: Callable[[], Any],
    ) -> None:
        self._submit = submit
        self._refetch = refetch
        # Single in-flight save; contenders are turned away, never queued.
        self._saving = threading.Lock()
        self.status = TagEditStatus.CLOSED
        self.target_id: int | None = None
        self.working_slugs: list[str] = []
        self.error: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status in (TagEditStatus.OPEN, TagEditStatus.ERROR)

    def open(self, record: CustomerRecord) -> None:
        if self.status == TagEditStatus.SAVING:
            raise TagEditStateError("Cannot open a tag edit session while a save is in flight.")
        self.target_id = record.id
        self.working_slugs = list(dict.fromkeys(record.tag_slugs()))
        self.error = None
        self.status = TagEditStatus.OPEN

    def toggle(self, slug: str) -> None:
        if not self.is_open:
            raise TagEditStateError(f"Cannot toggle tags in state {self.status.value}.")
        if slug in self.working_slugs:
            self.working_slugs.remove(slug)
        else:
            self.working_slugs.append(slug)

    def set_slugs(self, slugs) -> None:
        if not self.is_open:
            raise TagEditStateError(f"Cannot set tags in state {self.status.value}.")
        self.working_slugs = list(dict.fromkeys(slugs))

    def cancel(self) -> None:
        if self.status == TagEditStatus.SAVING:
            raise TagEditStateError("Cannot cancel while a save is in flight.")
        self._close()

    def _close(self) -> None:
        self.status = TagEditStatus.CLOSED
        self.target_id = None
        self.working_slugs = []
        self.error = None

    def save(self) -> bool:
        """
        Persist the working slugs.

        Returns True when the update was accepted. Returns False when the
        request was ignored (a save is already in flight) or when both
        payload schemas were rejected; in the latter case `status` is ERROR
        and `error` holds the message.
        """
        if not self._saving.acquire(blocking=False):
            logger.info("Tag save ignored: a save is already in flight for customer_id=%s", self.target_id)
            return False
        try:
            if not self.is_open:
                raise TagEditStateError(f"Cannot save in state {self.status.value}.")
            self.status = TagEditStatus.SAVING
            self.error = None
            customer_id = self.target_id
            slugs = list(self.working_slugs)

            try:
                self._submit(customer_id, {PREFERRED_FIELD: slugs})
            except Exception as e:
                logger.warning(
                    "Tag update with %r rejected for customer_id=%s (%s); retrying with %r",
                    PREFERRED_FIELD,
                    customer_id,
                    e,
                    FALLBACK_FIELD,
                )
                try:
                    self._submit(customer_id, {FALLBACK_FIELD: slugs})
                except Exception as e2:
                    logger.error("Tag update failed for customer_id=%s: %s", customer_id, e2)
                    self.status = TagEditStatus.ERROR
                    self.error = f"Failed to update tags: {e2}"
                    return False

            logger.info("Tag update accepted for customer_id=%s slugs=%s", customer_id, slugs)
            self._close()
            self._refetch()
            return True
        finally:
            self._saving.release()
