"""Configuration and constants."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("MOPSOS_DATA_DIR", BASE_DIR / "data"))
DATA_DIR.mkdir(parents=True, exist_ok=True)

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# Advisory deadline for a single remote query; expiry degrades to an empty result
QUERY_TIMEOUT_SECONDS = float(os.getenv("QUERY_TIMEOUT_SECONDS", "20"))

# Project list cache
CACHE_TTL_SECONDS = 300

# Comparison / history windows, label -> trailing days (None = everything)
TIME_RANGES: dict[str, int | None] = {"30d": 30, "90d": 90, "1y": 365, "all": None}

# Leaderboard: trailing 30 days ending yesterday
LEADERBOARD_WINDOW_DAYS = 30
LEADERBOARD_RPCS = {
    "twitter": "get_top_twitter_authors",
    "discord": "get_top_discord_authors",
    "telegram": "get_top_telegram_authors",
    "github": "get_top_github_authors",
}

# Per-platform message feeds shown on a project dashboard
ACTIVITY_TABLES = {
    "discord": os.getenv("DISCORD_TABLE", "discord"),
    "twitter": os.getenv("TWITTER_TABLE", "twitter"),
    "telegram": os.getenv("TELEGRAM_TABLE", "telegram"),
    "github": os.getenv("GITHUB_TABLE", "github"),
}
ACTIVITY_LIMIT = 20

PROBE_AVATARS = os.getenv("PROBE_AVATARS", "0") == "1"

# Favorites persist as a JSON array under a single key
FAVORITES_KEY = "mopsos-favorites"
FAVORITES_PATH = DATA_DIR / "favorites.json"

# API subscription price per month, in MATIC
API_UNIT_PRICE = float(os.getenv("API_UNIT_PRICE", "10"))
