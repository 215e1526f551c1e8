"""Shared fixtures: an in-memory stand-in for the Supabase store."""

import logging

import pytest

from app.collectors.fanout import QueryError

logger = logging.getLogger(__name__)


class FakeStore:
    """Answers select/rpc calls from dictionaries.

    ``failures`` names tables or functions that raise ``QueryError``;
    ``hold`` maps a project id to an event that must be set before any
    query filtered on that id returns.
    """

    def __init__(self, tables=None, rpcs=None, failures=(), hold=None):
        self.tables = tables or {}
        self.rpcs = rpcs or {}
        self.failures = set(failures)
        self.hold = hold or {}
        self.calls = []

    async def _wait(self, project_id):
        event = self.hold.get(project_id)
        if event is not None:
            await event.wait()

    async def select(self, table, columns="*", eq=None, neq=None, order=None, desc=False, limit=None, deadline=None):
        self.calls.append(("select", table, dict(eq or {})))
        await self._wait((eq or {}).get("id"))
        if table in self.failures:
            raise QueryError(f"select {table}: boom")
        rows = [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in (eq or {}).items())
            and all(r.get(k) != v for k, v in (neq or {}).items())
        ]
        if order:
            rows = sorted(rows, key=lambda r: (r.get(order) is None, r.get(order)), reverse=desc)
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        if limit:
            rows = rows[:limit]
        return rows

    async def rpc(self, function, params=None, deadline=None):
        self.calls.append(("rpc", function, dict(params or {})))
        await self._wait((params or {}).get("project_id"))
        if function in self.failures:
            raise QueryError(f"rpc {function}: boom")
        return list(self.rpcs.get(function, []))


HISTORY = [
    {"id": "p1", "date": "2024-01-01", "twitter_user": 100, "discord_user": 40, "closing_price": None},
    {"id": "p1", "date": "2024-01-02", "twitter_user": 110, "discord_user": 42, "closing_price": 1.5},
    {"id": "p1", "date": "2024-01-03", "twitter_user": 121, "discord_user": None, "closing_price": 1.8},
    {"id": "p2", "date": "2024-01-01", "twitter_user": 10, "telegram_user": 7, "closing_price": 3.0},
    {"id": "p2", "date": "2024-01-03", "twitter_user": 30, "telegram_user": 9, "closing_price": 2.0},
]


@pytest.fixture
def history_rows():
    return [dict(r) for r in HISTORY]


@pytest.fixture
def fake_store(history_rows):
    return FakeStore(tables={
        "project": [
            {"id": "p1", "name": "Alpha", "url": "https://a.example/logo.png", "display": "true"},
            {"id": "p2", "name": "beta", "url": "https://b.example/logo.png", "display": "true"},
            {"id": "p3", "name": "Hidden", "url": "", "display": "false"},
        ],
        "data": history_rows,
        "color": [{"metric": "twitter_user", "color": "#1da1f2"}],
        "twitter": [{"id": "p1", "date": "2024-01-03", "author": "alice", "content": "gm"}],
    })
