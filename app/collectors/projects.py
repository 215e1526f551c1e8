"""Project data loaders: overview, per-project dashboard and comparisons.

Each loader fans out its queries concurrently. The historical metrics of a
project are the critical resource of the dashboard; colours and activity
feeds are optional and degrade to empty results.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Hashable

from app.analysis.metrics import (
    apply_window,
    check_metric,
    comparison_stats,
    day_over_day,
    default_selection,
    discover_metrics,
    first_available,
    history_metrics,
    join_series,
)
from app.collectors import social
from app.collectors.fanout import (
    CriticalResourceError,
    Deadline,
    ViewGuard,
    require,
    settle_all,
    value_or_empty,
)
from app.collectors.store import SupabaseStore

log = logging.getLogger(__name__)

OVERVIEW_COLUMNS = "id, twitter_user, discord_user, telegram_user, closing_price, return, twitter_post, date"


async def list_projects(store: SupabaseStore, deadline: Deadline | None = None) -> list[dict]:
    return await store.select("project", neq={"display": "false"}, order="name", deadline=deadline)


async def latest_metrics(store: SupabaseStore, deadline: Deadline | None = None) -> list[dict]:
    """All overview rows, newest first; the first row per id is the latest."""
    return await store.select("data", columns=OVERVIEW_COLUMNS, order="date", desc=True, deadline=deadline)


async def project_history(store: SupabaseStore, project_id: str, deadline: Deadline | None = None) -> list[dict]:
    return await store.select("data", eq={"id": project_id}, order="date", deadline=deadline)


async def metric_series(store: SupabaseStore, project_id: str, metric: str, deadline: Deadline | None = None) -> list[dict]:
    check_metric(metric)
    return await store.select("data", columns=f"date, {metric}", eq={"id": project_id}, order="date", deadline=deadline)


async def color_map(store: SupabaseStore, deadline: Deadline | None = None) -> dict[str, str]:
    rows = await store.select("color", deadline=deadline)
    return {r["metric"]: r["color"] for r in rows if r.get("metric") and r.get("color")}


async def load_overview(store: SupabaseStore) -> dict[str, Any]:
    settled = await settle_all({
        "projects": list_projects(store),
        "latest": latest_metrics(store),
    })
    projects = require(settled["projects"], allow_empty=True)
    latest = value_or_empty(settled["latest"])
    log.info(f"Overview: {len(projects)} projects, {len(latest)} metric rows")
    return {"projects": projects, "latest": latest}


def metric_cards(history: list[dict], metrics: list[dict]) -> list[dict]:
    """Latest value per metric with its change from the previous day."""
    current = history[-1]
    previous = history[-2] if len(history) > 1 else {}
    return [
        {
            **m,
            "value": current.get(m["key"]),
            "change": day_over_day(current.get(m["key"]), previous.get(m["key"])),
        }
        for m in metrics
    ]


async def load_dashboard(
    store: SupabaseStore,
    project_id: str,
    range_label: str = "30d",
    now: datetime | None = None,
) -> dict[str, Any]:
    settled = await settle_all({
        "history": project_history(store, project_id),
        "colors": color_map(store),
        "activity": social.recent_activity(store, project_id),
    })
    history = require(settled["history"])
    colors = value_or_empty(settled["colors"], {})
    activity = value_or_empty(settled["activity"], {})

    metrics = history_metrics(history, colors)
    log.info(f"Dashboard {project_id}: {len(history)} days, {len(metrics)} metrics")
    return {
        "project_id": project_id,
        "range": range_label,
        "metrics": metrics,
        "selected": default_selection(metrics),
        "series": apply_window(history, range_label, now),
        "cards": metric_cards(history, metrics),
        "activity": activity,
    }


async def load_compare_metrics(store: SupabaseStore, project_a: str, project_b: str) -> dict[str, Any]:
    settled = await settle_all({
        project_a: project_history(store, project_a),
        project_b: project_history(store, project_b),
    })
    for s in settled.values():
        if not s.ok:
            raise CriticalResourceError(s.label, str(s.error)) from s.error
    metrics = discover_metrics(settled[project_a].value, settled[project_b].value)
    return {"metrics": metrics, "default": first_available(metrics)}


async def load_comparison(
    store: SupabaseStore,
    project_a: str,
    project_b: str,
    metric: str,
    range_label: str = "all",
    now: datetime | None = None,
) -> dict[str, Any]:
    check_metric(metric)
    settled = await settle_all({
        "a": metric_series(store, project_a, metric),
        "b": metric_series(store, project_b, metric),
    })
    for s in settled.values():
        if not s.ok:
            raise CriticalResourceError(f"{metric} series", str(s.error)) from s.error

    points = join_series(settled["a"].value, settled["b"].value, metric)
    points = apply_window(points, range_label, now)
    return {"metric": metric, "range": range_label, "points": points, "stats": comparison_stats(points)}


class View:
    """Holds the state of one mounted view and drops stale loads.

    ``show`` starts a load for an identity. If the view has moved on by
    the time the load settles, the result is discarded.
    """

    def __init__(self, store: SupabaseStore):
        self.store = store
        self.guard = ViewGuard()
        self.state: dict | None = None
        self.error: str | None = None
        self._last: tuple[Hashable, Callable[[], Awaitable[dict]]] | None = None

    async def _show(self, identity: Hashable, load: Callable[[], Awaitable[dict]]) -> dict | None:
        self._last = (identity, load)
        ticket = self.guard.begin(identity)
        try:
            result = await load()
        except CriticalResourceError as e:
            if self.guard.is_current(ticket):
                self.state, self.error = None, str(e)
            return None
        if not self.guard.is_current(ticket):
            log.info(f"Discarding stale load for {identity!r}")
            return None
        self.state, self.error = result, None
        return result

    async def retry(self) -> dict | None:
        """Manual retry of the last load."""
        if self._last is None:
            return None
        return await self._show(*self._last)


class DashboardView(View):
    async def show(self, project_id: str, range_label: str = "30d", now: datetime | None = None) -> dict | None:
        return await self._show(
            project_id,
            lambda: load_dashboard(self.store, project_id, range_label, now),
        )


class CompareView(View):
    async def show(
        self,
        project_a: str,
        project_b: str,
        metric: str,
        range_label: str = "all",
        now: datetime | None = None,
    ) -> dict | None:
        return await self._show(
            (project_a, project_b, metric, range_label),
            lambda: load_comparison(self.store, project_a, project_b, metric, range_label, now),
        )
