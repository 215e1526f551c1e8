"""Remote query service — thin async wrapper around the Supabase client.

The SDK client is synchronous; every ``execute`` runs on a worker thread so
several queries of one view can be in flight at the same time.
"""

import asyncio
import logging
from typing import Any

from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions

from app.collectors.fanout import Deadline, QueryError, with_deadline
from app.config import QUERY_TIMEOUT_SECONDS, SUPABASE_KEY, SUPABASE_URL

log = logging.getLogger(__name__)


def connect(url: str = SUPABASE_URL, key: str = SUPABASE_KEY, timeout: float = QUERY_TIMEOUT_SECONDS) -> Client:
    if not url or not key:
        raise QueryError("SUPABASE_URL and SUPABASE_KEY are required")
    options = SyncClientOptions(postgrest_client_timeout=max(5.0, timeout))
    return create_client(url, key, options=options)


class SupabaseStore:
    def __init__(self, client: Client, timeout: float | None = QUERY_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    async def _run(self, query: Any, label: str, deadline: Deadline | None) -> list[dict]:
        if deadline is None:
            deadline = Deadline.after(self.timeout)
        try:
            response = await with_deadline(asyncio.to_thread(query.execute), deadline, None, label)
        except Exception as e:
            raise QueryError(f"{label}: {e}") from e
        if response is None:
            return []
        data = response.data
        if data is None:
            return []
        if not isinstance(data, list):
            log.warning(f"{label} returned non-list payload: {type(data).__name__}")
            return []
        return data

    async def select(
        self,
        table: str,
        columns: str = "*",
        eq: dict[str, Any] | None = None,
        neq: dict[str, Any] | None = None,
        order: str | None = None,
        desc: bool = False,
        limit: int | None = None,
        deadline: Deadline | None = None,
    ) -> list[dict]:
        """Read rows from ``table`` filtered, ordered and limited."""
        query = self.client.table(table).select(columns)
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        for column, value in (neq or {}).items():
            query = query.neq(column, value)
        if order:
            query = query.order(order, desc=desc)
        if limit:
            query = query.limit(limit)
        return await self._run(query, f"select {table}", deadline)

    async def rpc(self, function: str, params: dict[str, Any] | None = None, deadline: Deadline | None = None) -> list[dict]:
        """Call a stored procedure by name with named parameters."""
        query = self.client.rpc(function, params or {})
        return await self._run(query, f"rpc {function}", deadline)
