"""Recent community activity per platform.

Sources (one table each, filtered by project id, newest first):
- Discord messages
- Twitter posts with engagement counters
- Telegram messages
- GitHub commits

Every feed is optional: a failed or slow feed shows up empty.
"""

import logging
from typing import Any

from app.collectors.fanout import settle_all, value_or_empty
from app.collectors.store import SupabaseStore
from app.config import ACTIVITY_LIMIT, ACTIVITY_TABLES

log = logging.getLogger(__name__)

FEED_COLUMNS = {
    "discord": "date, author, avatar, content",
    "twitter": "date, author, author_id, avatar, content, like, retweet, quote, comment",
    "telegram": "date, author, username, avatar, content",
    "github": "date, author, avatar, content, comment",
}


async def get_feed(store: SupabaseStore, platform: str, project_id: str, limit: int = ACTIVITY_LIMIT) -> list[dict]:
    return await store.select(
        ACTIVITY_TABLES[platform],
        columns=FEED_COLUMNS[platform],
        eq={"id": project_id},
        order="date",
        desc=True,
        limit=limit,
    )


async def recent_activity(store: SupabaseStore, project_id: str, limit: int = ACTIVITY_LIMIT) -> dict[str, Any]:
    settled = await settle_all({
        platform: get_feed(store, platform, project_id, limit) for platform in FEED_COLUMNS
    })
    feeds = {platform: value_or_empty(s) for platform, s in settled.items()}
    log.info(
        f"Activity {project_id}: "
        + ", ".join(f"{len(rows)} {platform}" for platform, rows in feeds.items())
    )
    return feeds
