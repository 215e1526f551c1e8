"""Project overview: latest snapshot per project, totals, search and sorting."""

from typing import Any

USER_COUNTS = ("twitter_user", "discord_user", "telegram_user")

SORT_KEYS = {
    "twitter": "twitter_user",
    "discord": "discord_user",
    "telegram": "telegram_user",
    "price": "closing_price",
}


def latest_by_project(rows: list[dict]) -> dict[str, dict]:
    """First row per project from rows ordered newest first."""
    latest: dict[str, dict] = {}
    for row in rows:
        pid = row.get("id")
        if pid is None or pid in latest:
            continue
        latest[pid] = {
            "id": pid,
            "date": row.get("date"),
            **{k: row.get(k) or 0 for k in USER_COUNTS},
            "closing_price": row.get("closing_price"),
            "return": row.get("return"),
            "twitter_post": row.get("twitter_post"),
        }
    return latest


def community_size(data: dict | None) -> int:
    if not data:
        return 0
    return sum(data.get(k) or 0 for k in USER_COUNTS)


def total_users(latest: dict[str, dict]) -> int:
    return sum(community_size(d) for d in latest.values())


def activity_level(data: dict | None) -> str:
    size = community_size(data)
    if size > 1000:
        return "high"
    if size > 50:
        return "medium"
    return "low"


def user_label(count: int) -> str:
    return "user" if count in (0, 1) else "users"


def search_projects(projects: list[dict], term: str) -> list[dict]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(projects)
    return [p for p in projects if needle in (p.get("name") or "").lower()]


def sort_projects(projects: list[dict], latest: dict[str, dict], by: str = "name") -> list[dict]:
    if by not in SORT_KEYS:
        return sorted(projects, key=lambda p: (p.get("name") or "").lower())
    column = SORT_KEYS[by]

    def metric(project: dict) -> Any:
        return (latest.get(project["id"]) or {}).get(column) or 0

    return sorted(projects, key=metric, reverse=True)


def split_favorites(projects: list[dict], favorites: list[str]) -> tuple[list[dict], list[dict]]:
    starred = set(favorites)
    return (
        [p for p in projects if p["id"] in starred],
        [p for p in projects if p["id"] not in starred],
    )


def build_overview(
    projects: list[dict],
    latest_rows: list[dict],
    favorites: list[str],
    term: str = "",
    by: str = "name",
) -> dict:
    latest = latest_by_project(latest_rows)
    shown = sort_projects(search_projects(projects, term), latest, by)
    starred, regular = split_favorites(shown, favorites)

    def card(project: dict) -> dict:
        data = latest.get(project["id"])
        return {
            **project,
            "metrics": data,
            "activity": activity_level(data),
            "favorite": project["id"] in favorites,
        }

    return {
        "total_projects": len(projects),
        "total_users": total_users(latest),
        "shown": len(shown),
        "favorites": [card(p) for p in starred],
        "projects": [card(p) for p in regular],
    }
