"""Leaderboard window, fan-out, panels, paging and avatar probing."""

from datetime import date

import httpx
import pytest

from app.analysis.leaderboard import (
    Pager,
    avatar_url,
    build_panels,
    community_entries,
    platform_icon,
    PLATFORMS,
    podium_icon,
    position_badge,
)
from app.collectors import leaderboard

from conftest import FakeStore

TWITTER = [
    {"author_id": "@a", "author": "A", "avatar": "https://pbs.example/a.jpg", "posts": 9, "total_likes": 40,
     "total_retweet": 3, "total_comment": 1, "total_quotes": 0},
    {"author_id": "@b", "author": "B", "avatar": "", "posts": 4, "total_likes": 10,
     "total_retweet": None, "total_comment": 2, "total_quotes": 1},
]
GITHUB = [{"author_id": f"dev{i}", "author": f"dev{i}", "avatar": "https://gh.example/x.png", "total_commits": 10 - i}
          for i in range(5)]


def test_window_ends_yesterday_and_spans_thirty_days():
    assert leaderboard.leaderboard_window(date(2024, 3, 1)) == {
        "start_date": "2024-01-30",
        "end_date": "2024-02-29",
    }


@pytest.mark.asyncio
async def test_load_leaderboards_calls_each_rpc_with_window():
    store = FakeStore(rpcs={"get_top_twitter_authors": TWITTER, "get_top_github_authors": GITHUB},
                      failures={"get_top_discord_authors"})

    data = await leaderboard.load_leaderboards(store, "p1", today=date(2024, 3, 1))

    assert data["results"]["twitter"] == TWITTER
    assert data["results"]["discord"] == []
    assert data["results"]["telegram"] == []
    rpc_calls = [c for c in store.calls if c[0] == "rpc"]
    assert {c[1] for c in rpc_calls} == set(leaderboard.LEADERBOARD_RPCS.values())
    assert all(c[2] == {"project_id": "p1", "start_date": "2024-01-30", "end_date": "2024-02-29"}
               for c in rpc_calls)


@pytest.mark.asyncio
async def test_community_leaderboard_ordered_by_rank():
    store = FakeStore(tables={"leaderboard": [
        {"id": "p1", "author": "second", "rank": 2},
        {"id": "p1", "author": "first", "rank": 1},
        {"id": "p2", "author": "other", "rank": 1},
    ]})

    rows = await leaderboard.community_leaderboard(store, "p1")

    assert [r["author"] for r in rows] == ["first", "second"]


def test_build_panels_drops_empty_platforms_and_keeps_order():
    panels = build_panels({"github": GITHUB, "twitter": TWITTER, "discord": [], "telegram": None})

    assert [p["id"] for p in panels] == ["twitter", "github"]
    positions = [e["position"] for e in panels[1]["entries"]]
    assert positions == [1, 2, 3, 4, 5]
    assert [e["author"] for e in panels[1]["entries"]] == [a["author"] for a in GITHUB]


def test_panel_entries_carry_badges_counters_and_avatars():
    entries = build_panels({"twitter": TWITTER})[0]["entries"]

    assert entries[0]["label"] == "🥇"
    assert entries[0]["counters"]["total_likes"] == 40
    assert entries[1]["counters"]["total_retweet"] == 0
    assert entries[1]["avatar"] == "/twitter_pfp.png"


def test_position_badges():
    assert podium_icon(1) == "🥇"
    assert podium_icon(3) == "🥉"
    assert podium_icon(4) is None
    assert position_badge(2)["icon"] == "medal"
    assert position_badge(7) == {"position": 7, "label": "#7", "icon": None, "podium": False}


def test_avatar_urls():
    assert avatar_url("discord", "123.png") == "/discord_avatar/123.png"
    assert avatar_url("telegram", None) == "/telegram_pfp.png"
    assert avatar_url("github", "https://gh.example/u.png") == "https://gh.example/u.png"
    assert avatar_url("github", None) == ""


def test_platform_icon_by_theme():
    twitter = PLATFORMS[0]
    assert platform_icon(twitter, "dark") == "/x-logo-light.svg"
    assert platform_icon(twitter, "light") == "/x-logo-dark.svg"


def test_community_entries_use_stored_rank():
    entries = community_entries([{"author": "x", "rank": 4, "like": 3, "avatar": None}])
    assert entries[0]["label"] == "#4"
    assert entries[0]["counters"] == {"post": 0, "like": 3, "retweet": 0, "comment": 0, "quote": 0}
    assert entries[0]["avatar"] == "/twitter_pfp.png"


# ============================================================================
# PAGER
# ============================================================================


def test_pager_select_and_bounds():
    pager = Pager()
    pager.sync(3)
    pager.select(2)
    assert (pager.index, pager.offset) == (2, -200)

    pager.select(5)
    assert pager.index == 2

    pager.sync(2)
    assert pager.index == 0


def test_pager_drag_switches_past_threshold():
    pager = Pager()
    pager.sync(3)

    pager.drag_start(500)
    pager.drag_move(400, viewport_width=1000)
    assert pager.offset == pytest.approx(-10)
    assert pager.drag_end(400) == 1

    pager.drag_start(100)
    assert pager.drag_end(140) == 1

    pager.drag_start(100)
    assert pager.drag_end(300) == 0
    assert pager.offset == 0


def test_pager_drag_stays_within_valid_indices():
    pager = Pager()
    pager.sync(2)

    pager.drag_start(500)
    assert pager.drag_end(900) == 0

    pager.select(1)
    pager.drag_start(500)
    assert pager.drag_end(100) == 1
    assert pager.offset == -100


def test_pager_ignores_release_without_drag():
    pager = Pager()
    pager.sync(2)
    assert pager.drag_end(0) == 0


# ============================================================================
# AVATAR PROBING
# ============================================================================


@pytest.mark.asyncio
async def test_probe_avatars_blanks_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200 if "good" in request.url.path else 404)

    authors = [
        {"author": "a", "avatar": "https://cdn.example/good.jpg"},
        {"author": "b", "avatar": "https://cdn.example/gone.jpg"},
        {"author": "c", "avatar": None},
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        probed = await leaderboard.probe_avatars(client, "twitter", authors)

    assert [a["avatar"] for a in probed] == ["https://cdn.example/good.jpg", None, None]


@pytest.mark.asyncio
async def test_probe_avatars_skips_other_platforms():
    def handler(request):
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await leaderboard.probe_avatars(client, "github", GITHUB) == GITHUB


@pytest.mark.asyncio
async def test_probe_avatars_treats_transport_errors_as_broken():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        probed = await leaderboard.probe_avatars(client, "telegram", [{"avatar": "https://t.example/a.jpg"}])

    assert probed[0]["avatar"] is None
