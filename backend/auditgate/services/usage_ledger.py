"""
Usage ledger: append-only record of audits performed.

One row in the ``audits`` table per permitted audit. Rows are never updated
or deleted here; retention is handled outside this service.
"""
import logging
from datetime import datetime
from typing import List, Optional

from ..core.validation import ensure_user_id, to_timestamp
from ..schemas.subscription import UsageEvent
from .record_store import RecordStore

logger = logging.getLogger(__name__)

AUDITS_TABLE = "audits"


class UsageLedger:
    """Records and counts usage events per user."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def record(self, user_id: str, timestamp: datetime, resource: Optional[str] = None) -> UsageEvent:
        """
        Append one usage event.

        Raises StoreUnavailable when the write fails or is not acknowledged,
        in which case the triggering audit must not be treated as consumed.
        """
        user_id = ensure_user_id(user_id)
        row = self.store.insert(AUDITS_TABLE, {
            "user_id": user_id,
            "url": resource,
            "created_at": to_timestamp(timestamp),
        })
        event = UsageEvent.from_row(row)
        logger.info(f"Recorded audit for user {user_id} at {event.created_at.isoformat()} ({resource or 'no url'})")
        return event

    async def count_since(self, user_id: str, window_start: datetime, resource: Optional[str] = None) -> int:
        """Count events for the user with created_at >= window_start, optionally for one URL."""
        user_id = ensure_user_id(user_id)
        eq = {"user_id": user_id}
        if resource is not None:
            eq["url"] = resource
        return self.store.count(
            AUDITS_TABLE,
            eq=eq,
            gte={"created_at": to_timestamp(window_start)},
        )

    async def recent(self, user_id: str, limit: int = 20) -> List[UsageEvent]:
        """Most recent events first."""
        user_id = ensure_user_id(user_id)
        rows = self.store.select(
            AUDITS_TABLE,
            columns="id, user_id, url, created_at",
            eq={"user_id": user_id},
            order_by="created_at",
            desc=True,
            limit=limit,
        )
        return [UsageEvent.from_row(row) for row in rows]
