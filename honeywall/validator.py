"""
Input validation and sanitisation for one raw sensor record.

`validate_record()` is pure: it never touches the store or the clock except
through the `now` argument, so the same input always yields the same output.
Hard failures raise `ValidationError`; oversize text and metadata are cut
down rather than rejected.
"""
from __future__ import annotations

import ipaddress
import json
import math
import time
from datetime import datetime, timezone
from typing import Any

from .config import (
    MAX_ATTACK_TYPE_LENGTH,
    MAX_IP_LENGTH,
    MAX_METADATA_SIZE,
    MAX_NAME_LENGTH,
    MAX_PAYLOAD_LENGTH,
    MAX_PROTOCOL_LENGTH,
    MAX_TYPE_LENGTH,
    TRUNCATION_MARKER,
)
from .errors import BAD_IP, BAD_PORT, BAD_RECORD, MISSING_FIELD, ValidationError

REQUIRED_FIELDS = ("source_ip", "honeypot_name", "honeypot_type")

# Accepted spellings for the stored column; the stored name wins when both are sent
FIELD_ALIASES = {
    "honeypot_name": "sensor_name",
    "honeypot_type": "sensor_type",
}

MISSING_MESSAGE = (
    "Missing required fields: source_ip, honeypot_name (or sensor_name), "
    "honeypot_type (or sensor_type)"
)


def field_value(raw: dict[str, Any], key: str) -> Any:
    value = raw.get(key)
    if value is None and key in FIELD_ALIASES:
        value = raw.get(FIELD_ALIASES[key])
    return value


def is_valid_ip(value: Any) -> bool:
    """Strict IPv4 / IPv6 textual form; no zone ids, no integer forms."""
    if not isinstance(value, str) or not value or len(value) > MAX_IP_LENGTH:
        return False
    if "%" in value or value != value.strip():
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def sanitize_string(value: Any, max_length: int) -> str | None:
    """Cut to `max_length` then trim whitespace; empty input becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(BAD_RECORD, "Text fields must be strings")
    text = str(value)[:max_length].strip()
    return text or None


def truncate_payload(payload: Any) -> str | None:
    if payload is None:
        return None
    if not isinstance(payload, str):
        raise ValidationError(BAD_RECORD, "payload must be a string")
    if len(payload) > MAX_PAYLOAD_LENGTH:
        return payload[:MAX_PAYLOAD_LENGTH] + TRUNCATION_MARKER
    return payload


def bound_metadata(metadata: Any) -> dict[str, Any]:
    """Replace metadata that serializes past the size cap with a marker."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise ValidationError(BAD_RECORD, "metadata must be an object")
    size = len(json.dumps(metadata, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))
    if size > MAX_METADATA_SIZE:
        return {"error": "metadata_truncated", "original_size": size}
    return metadata


def parse_timestamp(value: Any, now: float) -> float:
    """Caller timestamp (ISO-8601 or Unix seconds) or `now` if unusable.

    Naive ISO strings are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return now
    if isinstance(value, (int, float)):
        try:
            seconds = float(value)
        except OverflowError:
            return now
        if not math.isfinite(seconds) or seconds < 0:
            return now
        try:
            datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return now
        return seconds
    if not isinstance(value, str) or not value.strip():
        return now
    text = value.strip().replace(" ", "T")
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return now
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def validate_record(raw: Any, now: float | None = None) -> dict[str, Any]:
    """Check one raw record and return the normalised, store-ready dict."""
    if now is None:
        now = time.time()
    if not isinstance(raw, dict):
        raise ValidationError(BAD_RECORD, "Each log entry must be a JSON object")

    for key in REQUIRED_FIELDS:
        value = field_value(raw, key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(MISSING_FIELD, MISSING_MESSAGE)

    source_ip = raw["source_ip"]
    if not is_valid_ip(source_ip):
        raise ValidationError(BAD_IP, "Invalid source_ip format")

    source_port = raw.get("source_port")
    if source_port is not None:
        if isinstance(source_port, bool) or not isinstance(source_port, int) or not 0 <= source_port <= 65535:
            raise ValidationError(BAD_PORT, "Invalid source_port range (0-65535)")

    honeypot_name = sanitize_string(field_value(raw, "honeypot_name"), MAX_NAME_LENGTH)
    honeypot_type = sanitize_string(field_value(raw, "honeypot_type"), MAX_TYPE_LENGTH)
    if honeypot_name is None or honeypot_type is None:
        raise ValidationError(MISSING_FIELD, MISSING_MESSAGE)

    return {
        "timestamp":     parse_timestamp(raw.get("timestamp"), now),
        "source_ip":     source_ip,
        "source_port":   source_port,
        "honeypot_name": honeypot_name,
        "honeypot_type": honeypot_type,
        "attack_type":   sanitize_string(raw.get("attack_type"), MAX_ATTACK_TYPE_LENGTH),
        "payload":       truncate_payload(raw.get("payload")),
        "protocol":      sanitize_string(raw.get("protocol"), MAX_PROTOCOL_LENGTH),
        "metadata":      bound_metadata(raw.get("metadata")),
    }
