"""Mopsos social analytics — FastAPI application."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from app.analysis.leaderboard import build_panels, community_entries
from app.analysis.metrics import (
    InvalidParameter,
    correlation_strength,
    format_correlation,
    format_number,
    format_percent,
)
from app.analysis.overview import build_overview, user_label
from app.collectors import leaderboard, projects
from app.collectors.fanout import CriticalResourceError, QueryError
from app.collectors.store import SupabaseStore, connect
from app.config import BASE_DIR, CACHE_TTL_SECONDS, PROBE_AVATARS, TIME_RANGES
from app.favorites import Favorites, JsonFileStore
from app.subscription import SubscriptionError, quote, validate_months

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
log = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(title="Mopsos Social Analytics", version=VERSION)
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.filters["number"] = format_number

_store: SupabaseStore | None = None
_cache: dict = {}
_cache_time: datetime | None = None


def get_store() -> SupabaseStore:
    global _store
    if _store is None:
        _store = SupabaseStore(connect())
    return _store


def get_favorites() -> Favorites:
    return Favorites(JsonFileStore())


class QuoteRequest(BaseModel):
    months: Any = None


@app.exception_handler(CriticalResourceError)
async def critical_resource_failed(request: Request, exc: CriticalResourceError):
    return JSONResponse(status_code=503, content={"error": f"Failed to load {exc.resource}", "retry": True})


@app.exception_handler(SubscriptionError)
async def invalid_subscription(request: Request, exc: SubscriptionError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(InvalidParameter)
async def invalid_parameter(request: Request, exc: InvalidParameter):
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def load_overview(store: SupabaseStore, force: bool = False) -> dict:
    global _cache, _cache_time

    now = datetime.now(timezone.utc)
    if not force and _cache and _cache_time and (now - _cache_time).total_seconds() < CACHE_TTL_SECONDS:
        return _cache

    _cache = await projects.load_overview(store)
    _cache_time = now
    return _cache


def _check_range(range_label: str) -> str:
    label = range_label.lower()
    if label not in TIME_RANGES:
        raise InvalidParameter(f"Unknown time range: {range_label}")
    return label


@app.get("/", response_class=HTMLResponse)
async def home(request: Request, q: str = "", sort: str = "name",
               store: SupabaseStore = Depends(get_store), favorites: Favorites = Depends(get_favorites)):
    data = await load_overview(store)
    overview = build_overview(data["projects"], data["latest"], favorites.ids(), q, sort)
    return templates.TemplateResponse(
        request, "index.html", {"d": overview, "q": q, "sort": sort, "user_label": user_label},
    )


@app.get("/api/projects")
async def api_projects(store: SupabaseStore = Depends(get_store)):
    data = await load_overview(store)
    return {"projects": data["projects"]}


@app.get("/api/overview")
async def api_overview(q: str = "", sort: str = "name",
                       store: SupabaseStore = Depends(get_store), favorites: Favorites = Depends(get_favorites)):
    data = await load_overview(store)
    return build_overview(data["projects"], data["latest"], favorites.ids(), q, sort)


@app.get("/api/projects/{project_id}/dashboard")
async def api_dashboard(project_id: str, range: str = "30d", store: SupabaseStore = Depends(get_store)):
    return await projects.load_dashboard(store, project_id, _check_range(range))


@app.get("/api/compare/metrics")
async def api_compare_metrics(a: str, b: str, store: SupabaseStore = Depends(get_store)):
    result = await projects.load_compare_metrics(store, a, b)
    return {"metrics": [asdict(m) for m in result["metrics"]], "default": result["default"]}


def _stats_payload(stats) -> dict | None:
    if stats is None:
        return None
    payload = asdict(stats)
    for side in ("project_a", "project_b"):
        s = payload[side]
        s["latest_display"] = format_number(s["latest"])
        s["change_percent_display"] = format_percent(s["change_percent"])
    payload["correlation_display"] = format_correlation(stats.correlation)
    payload["strength"] = correlation_strength(stats.correlation)
    return payload


@app.get("/api/compare")
async def api_compare(a: str, b: str, metric: str, range: str = "all", store: SupabaseStore = Depends(get_store)):
    result = await projects.load_comparison(store, a, b, metric, _check_range(range))
    return {
        "metric": result["metric"],
        "range": result["range"],
        "points": [asdict(p) for p in result["points"]],
        "stats": _stats_payload(result["stats"]),
    }


@app.get("/api/projects/{project_id}/leaderboard")
async def api_leaderboard(project_id: str, theme: str = "light", store: SupabaseStore = Depends(get_store)):
    data = await leaderboard.load_leaderboards(store, project_id)
    results = data["results"]
    if PROBE_AVATARS:
        async with httpx.AsyncClient(timeout=5) as client:
            for platform in leaderboard.PROBED_PLATFORMS:
                results[platform] = await leaderboard.probe_avatars(client, platform, results[platform])
    return {"window": data["window"], "panels": build_panels(results, theme)}


@app.get("/api/projects/{project_id}/community")
async def api_community(project_id: str, store: SupabaseStore = Depends(get_store)):
    try:
        rows = await leaderboard.community_leaderboard(store, project_id)
    except QueryError as e:
        log.warning(f"Community leaderboard {project_id} failed: {e}")
        return {"entries": [], "error": "Failed to load community leaderboard"}
    if not rows:
        return {"entries": [], "error": "No leaderboard data available for this project"}
    return {"entries": community_entries(rows), "error": None}


@app.get("/api/favorites")
async def api_favorites(favorites: Favorites = Depends(get_favorites)):
    return {"favorites": favorites.ids()}


@app.get("/api/favorites/{project_id}")
async def api_is_favorite(project_id: str, favorites: Favorites = Depends(get_favorites)):
    return {"id": project_id, "favorite": favorites.is_favorite(project_id)}


@app.post("/api/favorites/{project_id}")
async def api_toggle_favorite(project_id: str, favorites: Favorites = Depends(get_favorites)):
    return {"favorites": favorites.toggle(project_id)}


@app.post("/api/subscription/quote")
async def api_quote(body: QuoteRequest):
    return quote(validate_months(body.months))


@app.post("/api/refresh")
async def api_refresh(store: SupabaseStore = Depends(get_store)):
    data = await load_overview(store, force=True)
    return {"status": "refreshed", "projects_count": len(data["projects"])}


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION, "ts": datetime.now(timezone.utc).isoformat()}
