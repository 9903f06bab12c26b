"""
Record store adapter over Supabase (PostgREST).

This is the only module that talks to the database. Services express
queries as simple equality / inequality / range filters and receive plain
row dictionaries back. Every transport or PostgREST failure is raised as
StoreUnavailable so callers can tell "could not determine" apart from
"denied".

Consistency: all reads and writes go through the project's primary
PostgREST endpoint, which gives read-your-writes within a request. If read
replicas are ever routed in front of these tables, counts become eventually
consistent and the audit limit may be overshot by the replication lag.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Filters = Optional[Dict[str, Any]]


@runtime_checkable
class RecordStore(Protocol):
    """Durable row storage used by the entitlement services."""

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        ...

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Filters = None,
        neq: Filters = None,
        gte: Filters = None,
        lt: Filters = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows matching every filter."""
        ...

    def count(
        self,
        table: str,
        *,
        eq: Filters = None,
        gte: Filters = None,
    ) -> int:
        """Exact count of rows matching every filter."""
        ...

    def update(
        self,
        table: str,
        values: Dict[str, Any],
        *,
        eq: Filters = None,
        lt: Filters = None,
    ) -> List[Dict[str, Any]]:
        """Update rows matching every filter and return the updated rows."""
        ...


class SupabaseRecordStore:
    """RecordStore backed by the Supabase service-role client."""

    def __init__(self, client: Client):
        self.supabase = client

    def _apply_filters(self, query, eq: Filters = None, neq: Filters = None, gte: Filters = None, lt: Filters = None):
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        for column, value in (neq or {}).items():
            query = query.neq(column, value)
        for column, value in (gte or {}).items():
            query = query.gte(column, value)
        for column, value in (lt or {}).items():
            query = query.lt(column, value)
        return query

    def _execute(self, query, operation: str, table: str):
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"❌ Record store {operation} on '{table}' failed: {e}")
            raise StoreUnavailable(
                f"Could not {operation} {table}",
                details={"table": table, "operation": operation},
            ) from e

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self.supabase.table(table).insert(row)
        result = self._execute(query, "insert into", table)

        # An insert that returns no representation was not acknowledged
        if not result.data:
            logger.error(f"❌ Insert into '{table}' returned no data")
            raise StoreUnavailable(
                f"Write to {table} was not acknowledged",
                details={"table": table, "operation": "insert"},
            )
        return result.data[0]

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Filters = None,
        neq: Filters = None,
        gte: Filters = None,
        lt: Filters = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self.supabase.table(table).select(columns)
        query = self._apply_filters(query, eq=eq, neq=neq, gte=gte, lt=lt)
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit is not None:
            query = query.limit(limit)
        result = self._execute(query, "read", table)
        return result.data or []

    def count(
        self,
        table: str,
        *,
        eq: Filters = None,
        gte: Filters = None,
    ) -> int:
        query = self.supabase.table(table).select("id", count="exact")
        query = self._apply_filters(query, eq=eq, gte=gte)
        result = self._execute(query, "count", table)
        if result.count is not None:
            return result.count
        return len(result.data or [])

    def update(
        self,
        table: str,
        values: Dict[str, Any],
        *,
        eq: Filters = None,
        lt: Filters = None,
    ) -> List[Dict[str, Any]]:
        query = self.supabase.table(table).update(values)
        query = self._apply_filters(query, eq=eq, lt=lt)
        result = self._execute(query, "update", table)
        return result.data or []
