"""Top community members per platform over the trailing 30 days.

Rankings are computed remotely by one stored procedure per platform; the
window ends yesterday (UTC) and starts 30 days before that.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from app.collectors.fanout import settle_all, value_or_empty
from app.collectors.store import SupabaseStore
from app.config import LEADERBOARD_RPCS, LEADERBOARD_WINDOW_DAYS

log = logging.getLogger(__name__)

# Platforms whose avatar URLs point at third-party CDNs that expire
PROBED_PLATFORMS = ("twitter", "telegram")

_sem = asyncio.Semaphore(8)


def leaderboard_window(today: date | None = None) -> dict[str, str]:
    today = today or datetime.now(timezone.utc).date()
    end = today - timedelta(days=1)
    start = end - timedelta(days=LEADERBOARD_WINDOW_DAYS)
    return {"start_date": start.isoformat(), "end_date": end.isoformat()}


async def get_top_authors(store: SupabaseStore, platform: str, project_id: str, window: dict[str, str]) -> list[dict]:
    rows = await store.rpc(LEADERBOARD_RPCS[platform], {"project_id": project_id, **window})
    log.info(f"{platform} leaderboard: {len(rows)} authors")
    return rows


async def load_leaderboards(store: SupabaseStore, project_id: str, today: date | None = None) -> dict[str, Any]:
    """All four platforms concurrently; a failed platform comes back empty."""
    window = leaderboard_window(today)
    settled = await settle_all({
        platform: get_top_authors(store, platform, project_id, window) for platform in LEADERBOARD_RPCS
    })
    return {
        "window": window,
        "results": {platform: value_or_empty(s) for platform, s in settled.items()},
    }


async def community_leaderboard(store: SupabaseStore, project_id: str) -> list[dict]:
    return await store.select("leaderboard", eq={"id": project_id}, order="rank")


async def _reachable(client: httpx.AsyncClient, url: str) -> bool:
    async with _sem:
        try:
            resp = await client.head(url, follow_redirects=True)
            return resp.status_code < 400
        except httpx.HTTPError as e:
            log.debug(f"Avatar probe failed for {url}: {e}")
            return False


async def probe_avatars(client: httpx.AsyncClient, platform: str, authors: list[dict]) -> list[dict]:
    """Blank out avatars that no longer load so the placeholder is shown."""
    if platform not in PROBED_PLATFORMS or not authors:
        return authors
    checks = await asyncio.gather(
        *[_reachable(client, a["avatar"]) if a.get("avatar") else _false() for a in authors]
    )
    broken = checks.count(False)
    if broken:
        log.info(f"{platform}: {broken}/{len(authors)} avatars fall back to placeholder")
    return [a if ok else {**a, "avatar": None} for a, ok in zip(authors, checks)]


async def _false() -> bool:
    return False
