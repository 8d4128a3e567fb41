"""
Aggregation engine – derives the dashboard views from the event window.

Every function here is a pure function of (events, now): nothing is cached
or mutated, so any number of computations may run side by side.  Events
older than the window are ignored, so callers may pass a superset.

Views
-----
  summary_stats()          – totals, blocked estimate, active sensors, threat level
  top_attackers()          – top 5 source IPs with a 0–100 threat score
  attack_type_breakdown()  – top 5 attack labels with share and stable colour
  time_series()            – 24 hourly buckets, oldest first, zero-filled
  sensor_status()          – health of every known or observed sensor

"Blocked" counts are a fixed-ratio estimate (BLOCKED_RATIO); sensors report
no ground truth for it.
"""
from __future__ import annotations

import hashlib
import math
from collections import Counter
from datetime import datetime
from typing import Iterable

from .config import DEFAULT_SENSORS
from .models import (
    AttackTypeBreakdown,
    DashboardViews,
    Event,
    SensorStatus,
    SummaryStats,
    TimeSeriesBucket,
    TopAttacker,
)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

WINDOW_SECONDS  = 24 * 3600
HOUR            = 3600
BLOCKED_RATIO   = 0.98
ALERT_THRESHOLD = 100
TOP_N           = 5
OTHER_LABEL     = "Other"

THREAT_THRESHOLDS = [
    (1000, "CRITICAL"),
    (500,  "HIGH"),
    (100,  "MEDIUM"),
]

ATTACK_TYPE_COLORS: dict[str, str] = {
    "SSH Brute Force":     "hsl(0, 85%, 55%)",
    "SQL Injection":       "hsl(35, 100%, 50%)",
    "Port Scan":           "hsl(170, 100%, 50%)",
    "XSS Attempt":         "hsl(280, 80%, 60%)",
    "Credential Stuffing": "hsl(200, 80%, 50%)",
    "Directory Traversal": "hsl(45, 90%, 50%)",
    "DDoS":                "hsl(320, 80%, 55%)",
    "Other":               "hsl(220, 15%, 40%)",
}

# Fallback palette for labels missing from the table
PALETTE = [
    "hsl(10, 75%, 55%)",
    "hsl(60, 70%, 45%)",
    "hsl(95, 60%, 45%)",
    "hsl(140, 65%, 45%)",
    "hsl(185, 70%, 45%)",
    "hsl(230, 70%, 60%)",
    "hsl(260, 65%, 60%)",
    "hsl(300, 60%, 55%)",
    "hsl(340, 75%, 60%)",
    "hsl(25, 55%, 40%)",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def color_for(label: str) -> str:
    """Stable colour for an attack label, identical across processes."""
    color = ATTACK_TYPE_COLORS.get(label)
    if color is not None:
        return color
    digest = hashlib.sha1(label.encode("utf-8")).digest()
    return PALETTE[int.from_bytes(digest[:4], "big") % len(PALETTE)]


def threat_level(total: int) -> str:
    for threshold, label in THREAT_THRESHOLDS:
        if total > threshold:
            return label
    return "LOW"


def blocked_estimate(count: int, ratio: float = BLOCKED_RATIO) -> int:
    # 100 * 0.98 must floor to 98
    return math.floor(round(count * ratio, 6))


def format_time_ago(ts: float, now: float) -> str:
    seconds = int(now - ts)
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60} min ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def in_window(events: Iterable[Event], now: float, window: float = WINDOW_SECONDS) -> list[Event]:
    since = now - window
    return [e for e in events if e.timestamp >= since]


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def summary_stats(
    events: list[Event],
    now: float,
    sensors: dict[str, str] | None = None,
    ratio: float = BLOCKED_RATIO,
) -> SummaryStats:
    window = in_window(events, now)
    registry = DEFAULT_SENSORS if sensors is None else sensors
    active = {e.honeypot_name for e in window}
    total = len(window)
    return SummaryStats(
        total_attacks=total,
        blocked_estimate=blocked_estimate(total, ratio),
        active_sensors=len(active),
        total_sensors=len(set(registry) | active),
        threat_level=threat_level(total),
    )


def top_attackers(events: list[Event], now: float, limit: int = TOP_N) -> list[TopAttacker]:
    window = in_window(events, now)
    total = len(window)
    counts: Counter[str] = Counter()
    last_seen: dict[str, float] = {}
    for e in window:
        counts[e.source_ip] += 1
        if e.timestamp > last_seen.get(e.source_ip, float("-inf")):
            last_seen[e.source_ip] = e.timestamp

    ranked = sorted(counts, key=lambda ip: (counts[ip], last_seen[ip]), reverse=True)
    return [
        TopAttacker(
            ip=ip,
            attacks=counts[ip],
            last_seen=last_seen[ip],
            last_seen_label=format_time_ago(last_seen[ip], now),
            threat_score=min(100, math.floor(50 + counts[ip] / total * 100)),
        )
        for ip in ranked[:limit]
    ]


def attack_type_breakdown(events: list[Event], now: float, limit: int = TOP_N) -> list[AttackTypeBreakdown]:
    window = in_window(events, now)
    total = len(window)
    counts = Counter(e.attack_type or OTHER_LABEL for e in window)
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [
        AttackTypeBreakdown(
            name=name,
            value=math.floor(count / total * 100 + 0.5),
            count=count,
            color=color_for(name),
        )
        for name, count in ranked[:limit]
    ]


def time_series(events: list[Event], now: float, ratio: float = BLOCKED_RATIO) -> list[TimeSeriesBucket]:
    """24 hourly buckets aligned to local clock hours, oldest first."""
    current_hour = datetime.fromtimestamp(now).replace(minute=0, second=0, microsecond=0).timestamp()
    first = current_hour - 23 * HOUR
    counts = [0] * 24
    for e in in_window(events, now):
        idx = math.floor((e.timestamp - first) / HOUR)
        if 0 <= idx < 24:
            counts[idx] += 1

    return [
        TimeSeriesBucket(
            time=datetime.fromtimestamp(first + i * HOUR).strftime("%H:00"),
            attacks=count,
            blocked=blocked_estimate(count, ratio),
        )
        for i, count in enumerate(counts)
    ]


def sensor_status(
    events: list[Event],
    now: float,
    sensors: dict[str, str] | None = None,
    alert_threshold: int = ALERT_THRESHOLD,
) -> list[SensorStatus]:
    window = in_window(events, now)
    types = dict(DEFAULT_SENSORS if sensors is None else sensors)
    attacks: Counter[str] = Counter({name: 0 for name in types})
    recent: Counter[str] = Counter()
    last_activity: dict[str, float] = {}
    hour_ago = now - HOUR

    for e in window:
        name = e.honeypot_name
        types.setdefault(name, e.honeypot_type)
        attacks[name] += 1
        if e.timestamp > hour_ago:
            recent[name] += 1
        if e.timestamp > last_activity.get(name, float("-inf")):
            last_activity[name] = e.timestamp

    result = []
    for name, count in attacks.items():
        seen = last_activity.get(name)
        if seen is None or seen <= hour_ago:
            status = "offline"
        elif recent[name] > alert_threshold:
            status = "alert"
        else:
            status = "online"
        result.append(SensorStatus(
            name=name,
            type=types.get(name) or "Unknown",
            status=status,
            attacks_24h=count,
            last_activity=seen,
        ))
    result.sort(key=lambda s: s.attacks_24h, reverse=True)
    return result


def compute_views(
    events: list[Event],
    now: float,
    sensors: dict[str, str] | None = None,
    ratio: float = BLOCKED_RATIO,
    alert_threshold: int = ALERT_THRESHOLD,
) -> DashboardViews:
    window = in_window(events, now)
    return DashboardViews(
        stats=summary_stats(window, now, sensors, ratio),
        top_attackers=top_attackers(window, now),
        attack_types=attack_type_breakdown(window, now),
        timeseries=time_series(window, now, ratio),
        sensors=sensor_status(window, now, sensors, alert_threshold),
    )
