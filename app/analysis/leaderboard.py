"""Leaderboard presentation: panels, position badges and paging.

Rankings arrive already ordered by the remote side. Nothing here re-ranks,
re-aggregates or merges platforms: empty platforms are dropped, positions
1..N are attached and a pager keeps track of the visible platform.
"""

from dataclasses import dataclass, field
from typing import Any

PLATFORMS = [
    {"id": "twitter", "name": "Twitter", "logo": "/x-logo-light.svg", "logo_dark": "/x-logo-dark.svg"},
    {"id": "discord", "name": "Discord", "logo": "/discord-logo-light.svg", "logo_dark": "/discord-logo-dark.svg"},
    {"id": "telegram", "name": "Telegram", "logo": "/telegram-light.svg", "logo_dark": "/telegram-dark.svg"},
    {"id": "github", "name": "GitHub", "logo": "/github-light.svg", "logo_dark": "/github-dark.svg"},
]

FALLBACK_AVATARS = {
    "twitter": "/twitter_pfp.png",
    "telegram": "/telegram_pfp.png",
}

PODIUM = {1: "🥇", 2: "🥈", 3: "🥉"}
RANK_ICONS = {1: "trophy", 2: "medal", 3: "award"}

# Counters shown per platform, in display order
COUNTERS = {
    "twitter": ["posts", "total_likes", "total_retweet", "total_comment", "total_quotes"],
    "discord": ["total_message"],
    "telegram": ["total_message"],
    "github": ["total_commits"],
}

SWIPE_THRESHOLD_PX = 50


def podium_icon(position: int) -> str | None:
    return PODIUM.get(position)


def position_badge(position: int) -> dict:
    return {
        "position": position,
        "label": podium_icon(position) or f"#{position}",
        "icon": RANK_ICONS.get(position),
        "podium": position in PODIUM,
    }


def avatar_url(platform: str, avatar: str | None) -> str:
    if platform == "discord" and avatar:
        return f"/discord_avatar/{avatar}"
    if not avatar:
        return FALLBACK_AVATARS.get(platform, "")
    return avatar


def platform_icon(platform: dict, theme: str = "light") -> str:
    # Light-on-dark artwork is the "light" file
    return platform["logo"] if theme == "dark" else platform["logo_dark"]


def _entry(platform: str, position: int, author: dict[str, Any]) -> dict:
    return {
        **position_badge(position),
        "author_id": author.get("author_id"),
        "author": author.get("author", ""),
        "avatar": avatar_url(platform, author.get("avatar")),
        "counters": {name: author.get(name) or 0 for name in COUNTERS.get(platform, [])},
    }


def build_panels(results: dict[str, list[dict]], theme: str = "light") -> list[dict]:
    """One panel per platform with at least one entry, in platform order."""
    panels = []
    for platform in PLATFORMS:
        authors = results.get(platform["id"]) or []
        if not authors:
            continue
        panels.append({
            "id": platform["id"],
            "name": platform["name"],
            "icon": platform_icon(platform, theme),
            "entries": [_entry(platform["id"], i, a) for i, a in enumerate(authors, start=1)],
        })
    return panels


def community_entries(rows: list[dict]) -> list[dict]:
    """Precomputed ``leaderboard`` rows, which carry their own rank."""
    return [
        {
            **position_badge(row.get("rank") or i),
            "author_id": row.get("author_id"),
            "author": row.get("author", ""),
            "avatar": avatar_url("twitter", row.get("avatar")),
            "counters": {k: row.get(k) or 0 for k in ("post", "like", "retweet", "comment", "quote")},
        }
        for i, row in enumerate(rows, start=1)
    ]


@dataclass
class Pager:
    """Horizontally paged view over ``count`` panels.

    ``offset`` is the track translation in percent of one page, as the
    slider renders it.
    """

    count: int = 0
    index: int = 0
    offset: float = 0.0
    dragging: bool = False
    _start_x: float = field(default=0.0, repr=False)

    def sync(self, count: int) -> None:
        self.count = count
        if count > 0 and self.index >= count:
            self.index = 0
        self.offset = -self.index * 100

    def select(self, index: int) -> None:
        if 0 <= index < self.count:
            self.index = index
        self.offset = -self.index * 100

    def drag_start(self, x: float) -> None:
        self.dragging = True
        self._start_x = x

    def drag_move(self, x: float, viewport_width: float) -> None:
        if not self.dragging or viewport_width <= 0:
            return
        self.offset = -self.index * 100 + (x - self._start_x) / viewport_width * 100

    def drag_end(self, x: float) -> int:
        if not self.dragging:
            return self.index
        self.dragging = False
        diff = x - self._start_x
        if abs(diff) > SWIPE_THRESHOLD_PX:
            if diff > 0 and self.index > 0:
                self.index -= 1
            elif diff < 0 and self.index < self.count - 1:
                self.index += 1
        self.offset = -self.index * 100
        return self.index
