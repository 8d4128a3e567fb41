"""
Runtime configuration for HoneyWall.

Every knob is read from the environment once, when `load_settings()` is
called.  Field limits are module constants – they are part of the ingestion
contract, not deployment tuning.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Field limits
# ---------------------------------------------------------------------------

MAX_IP_LENGTH          = 45     # longest textual IPv6 form
MAX_NAME_LENGTH        = 50
MAX_TYPE_LENGTH        = 100
MAX_ATTACK_TYPE_LENGTH = 100
MAX_PROTOCOL_LENGTH    = 20
MAX_PAYLOAD_LENGTH     = 5000
MAX_METADATA_SIZE      = 2000   # bytes of serialized JSON
TRUNCATION_MARKER      = "...[truncated]"

# ---------------------------------------------------------------------------
# Sensor registry
# ---------------------------------------------------------------------------

DEFAULT_SENSORS: dict[str, str] = {
    "SSH-01":  "SSH Server",
    "WEB-01":  "Web Application",
    "WEB-02":  "Web Application",
    "NET-01":  "Network Scanner",
    "FTP-01":  "FTP Server",
    "SMTP-01": "Mail Server",
}


def parse_sensor_registry(value: str) -> dict[str, str]:
    """Parse ``NAME=Type,NAME=Type`` into a registry dict."""
    sensors: dict[str, str] = {}
    for raw in value.split(","):
        name, _, kind = raw.partition("=")
        name = name.strip()
        if name:
            sensors[name] = kind.strip() or "Unknown"
    return sensors


@dataclass
class Settings:
    api_key: str | None = None
    db_path: str = "./honeywall.db"

    rate_limit_max_requests: int = 100
    rate_limit_window: float = 60.0        # seconds
    rate_limit_sweep_interval: float = 60.0

    max_payload_size: int = 10 * 1024      # bytes, checked before parsing
    max_batch_size: int = 100
    store_timeout: float = 5.0

    blocked_ratio: float = 0.98
    alert_threshold: int = 100
    events_limit: int = 500

    sensors: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SENSORS))


def load_settings() -> Settings:
    env = os.environ
    sensors_raw = env.get("KNOWN_SENSORS", "")
    return Settings(
        api_key=env.get("HONEYPOT_API_KEY") or None,
        db_path=env.get("DB_PATH", "./honeywall.db"),
        rate_limit_max_requests=int(env.get("RATE_LIMIT_MAX_REQUESTS", "100")),
        rate_limit_window=float(env.get("RATE_LIMIT_WINDOW", "60")),
        rate_limit_sweep_interval=float(env.get("RATE_LIMIT_SWEEP_INTERVAL", "60")),
        max_payload_size=int(env.get("MAX_PAYLOAD_SIZE", str(10 * 1024))),
        max_batch_size=int(env.get("MAX_BATCH_SIZE", "100")),
        store_timeout=float(env.get("STORE_TIMEOUT", "5")),
        blocked_ratio=float(env.get("BLOCKED_RATIO", "0.98")),
        alert_threshold=int(env.get("ALERT_THRESHOLD", "100")),
        events_limit=int(env.get("EVENTS_LIMIT", "500")),
        sensors=parse_sensor_registry(sensors_raw) if sensors_raw else dict(DEFAULT_SENSORS),
    )
