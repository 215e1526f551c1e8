"""Metric discovery, comparison join and statistics.

Rows come from the ``data`` table: one row per project per day, ``id`` is
the project, ``date`` an ISO ``YYYY-MM-DD`` string, every other column a
metric that may be null on any given day.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from app.config import TIME_RANGES

log = logging.getLogger(__name__)


class InvalidParameter(ValueError):
    """A request parameter outside the accepted values."""


NON_METRIC_KEYS = ("id", "date")
METRIC_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
DEFAULT_COLOR = "#000000"


@dataclass
class MetricInfo:
    key: str
    name: str
    available: bool


@dataclass
class ComparisonPoint:
    date: str
    value_a: float | None
    value_b: float | None


@dataclass
class ProjectStats:
    latest: float | None = None
    change: float | None = None
    change_percent: float | None = None


@dataclass
class ComparisonStats:
    project_a: ProjectStats
    project_b: ProjectStats
    correlation: float | None

    @property
    def strength(self) -> str:
        return correlation_strength(self.correlation)


# ─── Discovery ──────────────────────────────────────────────────────

def display_name(key: str) -> str:
    """``twitter_user`` -> ``Twitter User``."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))


def metric_keys(rows: Iterable[dict]) -> list[str]:
    """Every non-null metric column over the whole history, in first-seen order."""
    keys: dict[str, None] = {}
    for row in rows:
        for key, value in row.items():
            if value is not None and key not in NON_METRIC_KEYS:
                keys.setdefault(key)
    return list(keys)


def discover_metrics(rows_a: list[dict], rows_b: list[dict]) -> list[MetricInfo]:
    """Metrics of two projects, comparable ones first, then by display name."""
    if not rows_a or not rows_b:
        return []
    keys_a = metric_keys(rows_a)
    keys_b = metric_keys(rows_b)
    set_a, set_b = set(keys_a), set(keys_b)
    infos = [
        MetricInfo(key=key, name=display_name(key), available=key in set_a and key in set_b)
        for key in dict.fromkeys(keys_a + keys_b)
    ]
    infos.sort(key=lambda m: (not m.available, m.name))
    return infos


def check_metric(metric: str) -> str:
    """A metric key must be a bare column name."""
    if not METRIC_KEY.fullmatch(metric or ""):
        raise InvalidParameter(f"Unknown metric: {metric!r}")
    return metric


def first_available(metrics: list[MetricInfo]) -> str | None:
    return next((m.key for m in metrics if m.available), None)


def history_metrics(rows: list[dict], colors: dict[str, str]) -> list[dict]:
    """Dashboard metric list for one project, with chart colours."""
    return [
        {"key": key, "name": display_name(key), "color": colors.get(key) or DEFAULT_COLOR}
        for key in metric_keys(rows)
    ]


def default_selection(metrics: list[dict], count: int = 3) -> list[str]:
    return [m["key"] for m in metrics[:count]]


# ─── Join & window ──────────────────────────────────────────────────

def _lookup(rows: Iterable[dict], metric: str) -> dict[str, Any]:
    # Duplicate dates are not expected; the later row wins
    return {row["date"]: row.get(metric) for row in rows if row.get("date")}


def join_series(rows_a: list[dict], rows_b: list[dict], metric: str) -> list[ComparisonPoint]:
    """Points on the dates both projects report, ascending; nulls are kept."""
    lookup_a = _lookup(rows_a, metric)
    lookup_b = _lookup(rows_b, metric)
    common = sorted(set(lookup_a) & set(lookup_b))
    return [ComparisonPoint(date=d, value_a=lookup_a[d], value_b=lookup_b[d]) for d in common]


def _as_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value[:10]).replace(tzinfo=timezone.utc)


def window_cutoff(range_label: str, now: datetime | None = None) -> datetime | None:
    """Start of a trailing window measured from wall-clock now."""
    label = range_label.lower()
    if label not in TIME_RANGES:
        raise InvalidParameter(f"Unknown time range: {range_label}")
    days = TIME_RANGES[label]
    if days is None:
        return None
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - timedelta(days=days)


def apply_window(items: list, range_label: str, now: datetime | None = None, date_of=None) -> list:
    """Keep items dated at or after the window cutoff.

    A stale series shows fewer points than the window length: the cutoff
    follows the clock, not the newest sample.
    """
    cutoff = window_cutoff(range_label, now)
    if cutoff is None:
        return list(items)
    if date_of is None:
        date_of = _date_of
    return [item for item in items if _as_datetime(date_of(item)) >= cutoff]


def _date_of(item: Any) -> str:
    return item["date"] if isinstance(item, dict) else item.date


# ─── Statistics ─────────────────────────────────────────────────────

def series_stats(values: list[float | None]) -> ProjectStats:
    """Latest value and first-to-latest change of one project's series."""
    present = [v for v in values if v is not None]
    if not present:
        return ProjectStats()
    stats = ProjectStats(latest=present[-1])
    if len(present) >= 2:
        first, last = present[0], present[-1]
        stats.change = last - first
        stats.change_percent = (last - first) / first * 100 if first != 0 else None
    return stats


def pearson(pairs: list[tuple[float, float]]) -> float | None:
    """Pearson r over complete pairs; None for n < 2 or a constant series."""
    n = len(pairs)
    if n < 2:
        return None
    # Raw sums of a float constant such as 0.3 leave a tiny nonzero spread
    if len({x for x, _ in pairs}) == 1 or len({y for _, y in pairs}) == 1:
        return None
    sum_x = sum(x for x, _ in pairs)
    sum_y = sum(y for _, y in pairs)
    sum_xy = sum(x * y for x, y in pairs)
    sum_x2 = sum(x * x for x, _ in pairs)
    sum_y2 = sum(y * y for _, y in pairs)

    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0:
        return None
    return (n * sum_xy - sum_x * sum_y) / math.sqrt(spread)


def comparison_stats(points: list[ComparisonPoint]) -> ComparisonStats | None:
    if not points:
        return None
    pairs = [(p.value_a, p.value_b) for p in points if p.value_a is not None and p.value_b is not None]
    return ComparisonStats(
        project_a=series_stats([p.value_a for p in points]),
        project_b=series_stats([p.value_b for p in points]),
        correlation=pearson(pairs),
    )


def correlation_strength(r: float | None) -> str:
    if r is None:
        return "Unknown"
    if abs(r) > 0.7:
        return "Strong"
    if abs(r) > 0.3:
        return "Moderate"
    return "Weak"


def day_over_day(current: float | None, previous: float | None) -> str:
    """Percent change against the previous day, two decimals."""
    if current is None or previous is None or previous == 0:
        return "N/A"
    return f"{(current - previous) / previous * 100:.2f}"


# ─── Formatting ─────────────────────────────────────────────────────

def format_number(value: float | None) -> str:
    if value is None:
        return "N/A"
    if value >= 1e9:
        return f"{value / 1e9:.1f}B"
    if value >= 1e6:
        return f"{value / 1e6:.1f}M"
    if value >= 1e3:
        return f"{value / 1e3:.1f}K"
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def format_percent(value: float | None) -> str:
    if value is None:
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"


def format_correlation(r: float | None) -> str:
    return "N/A" if r is None else f"{r:.3f}"
