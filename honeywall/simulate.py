#!/usr/bin/env python3
"""
HoneyWall – Sensor Simulator
============================
Posts synthetic honeypot events to a running ingestion gateway so the
dashboard views have something to show.

Usage
-----
    HONEYPOT_API_KEY=secret python -m honeywall.simulate
    python -m honeywall.simulate --preset heavy --api-key secret
    python -m honeywall.simulate --events 300 --batch 25 --delay 0.2

Presets
-------
  light   20 events,  3 fake IPs  → LOW
  medium 150 events,  6 fake IPs  → MEDIUM
  heavy  600 events, 12 fake IPs  → HIGH
"""
from __future__ import annotations

import argparse
import os
import random
import sys
import time
from datetime import datetime, timezone

import httpx

from .config import DEFAULT_SENSORS

# ---------------------------------------------------------------------------
# Attack data
# ---------------------------------------------------------------------------

SENSOR_ATTACKS: dict[str, list[tuple[str, str, int]]] = {
    # sensor name -> (attack_type, protocol, destination port)
    "SSH-01":  [("SSH Brute Force", "SSH", 22), ("Credential Stuffing", "SSH", 22)],
    "WEB-01":  [("SQL Injection", "HTTP", 80), ("XSS Attempt", "HTTP", 80),
                ("Directory Traversal", "HTTP", 80)],
    "WEB-02":  [("SQL Injection", "HTTPS", 443), ("XSS Attempt", "HTTPS", 443)],
    "NET-01":  [("Port Scan", "TCP", 0), ("DDoS", "UDP", 0)],
    "FTP-01":  [("Credential Stuffing", "FTP", 21)],
    "SMTP-01": [("Credential Stuffing", "SMTP", 25)],
}

PAYLOADS = {
    "SSH Brute Force":     ["root:123456", "admin:admin", "pi:raspberry", "ubuntu:ubuntu"],
    "Credential Stuffing": ["user@example.com:Summer2024!", "admin:changeme"],
    "SQL Injection":       ["' OR 1=1 --", "1; DROP TABLE users", "' UNION SELECT password FROM users --"],
    "XSS Attempt":         ["<script>alert(1)</script>", "<img src=x onerror=alert(1)>"],
    "Directory Traversal": ["../../../../etc/passwd", "..%2f..%2fwindows/win.ini"],
    "Port Scan":           ["SYN 22,23,80,443,3389"],
    "DDoS":                ["UDP flood 12000 pps"],
}

IP_POOLS = {
    3:  ["45.33.32.156", "192.241.235.219", "104.21.8.1"],
    6:  ["45.33.32.156", "192.241.235.219", "104.21.8.1",
         "185.220.101.3", "89.248.167.131", "2001:db8::42"],
    12: ["45.33.32.156", "192.241.235.219", "104.21.8.1",
         "185.220.101.3", "89.248.167.131", "198.199.80.61",
         "176.58.120.12", "212.47.234.5",   "95.85.43.22",
         "91.92.251.103", "2001:db8::42",   "2001:db8:85a3::8a2e:370:7334"],
}

PRESETS = {
    "light":  {"events": 20,  "ips": 3,  "batch": 5,  "delay": 0.1},
    "medium": {"events": 150, "ips": 6,  "batch": 10, "delay": 0.05},
    "heavy":  {"events": 600, "ips": 12, "batch": 50, "delay": 0.05},
}


# ---------------------------------------------------------------------------
# Event builder
# ---------------------------------------------------------------------------

def make_event(ip: str) -> dict:
    sensor = random.choice(list(SENSOR_ATTACKS))
    attack_type, protocol, port = random.choice(SENSOR_ATTACKS[sensor])
    return {
        "timestamp":     datetime.now(timezone.utc).isoformat(),
        "source_ip":     ip,
        "source_port":   random.randint(1024, 65535),
        "honeypot_name": sensor,
        "honeypot_type": DEFAULT_SENSORS[sensor],
        "attack_type":   attack_type,
        "payload":       random.choice(PAYLOADS[attack_type]),
        "protocol":      protocol,
        "metadata":      {"dest_port": port, "simulated": True},
    }


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def run_simulation(
    *,
    url: str,
    api_key: str,
    ips: list[str],
    n_events: int,
    batch: int,
    delay: float,
) -> int:
    print(f"\n  HoneyWall Sensor Simulator")
    print(f"  Target    : {url}")
    print(f"  Fake IPs  : {len(ips)}  ({', '.join(ips[:3])}{'...' if len(ips) > 3 else ''})")
    print(f"  Events    : {n_events} in batches of {batch}")
    print()

    sent = 0
    failed = 0
    with httpx.Client(timeout=5.0, headers={"x-api-key": api_key}) as client:
        while sent + failed < n_events:
            size = min(batch, n_events - sent - failed)
            entries = [make_event(random.choice(ips)) for _ in range(size)]
            try:
                r = client.post(url, json=entries)
            except httpx.HTTPError as exc:
                print(f"  ERROR posting batch: {exc}")
                failed += size
                continue
            if r.status_code == 200:
                sent += size
                print(f"  [{sent:>4}] stored ids {r.json()['ids'][:3]}...")
            else:
                failed += size
                print(f"  [{r.status_code}] {r.json().get('error', r.text)}")
                if r.status_code in (401, 405):
                    break
            if delay > 0:
                time.sleep(delay)

    print()
    print(f"  Done. Sent {sent} events, {failed} failed.")
    print()
    return 0 if failed == 0 else 1


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> int:
    parser = argparse.ArgumentParser(description="Post synthetic honeypot events to HoneyWall.")
    parser.add_argument("--url", default=os.getenv("HONEYWALL_URL", "http://localhost:8000/ingest"))
    parser.add_argument("--api-key", default=os.getenv("HONEYPOT_API_KEY", ""))
    parser.add_argument("--preset", choices=list(PRESETS), default="medium")
    parser.add_argument("--events", type=int, help="Override number of events")
    parser.add_argument("--ips",    type=int, choices=[3, 6, 12], help="Override number of fake IPs")
    parser.add_argument("--batch",  type=int, help="Events per request (max 100)")
    parser.add_argument("--delay",  type=float, help="Seconds between requests")
    args = parser.parse_args()

    if not args.api_key:
        print("  An API key is required (--api-key or HONEYPOT_API_KEY).", file=sys.stderr)
        return 2

    cfg = PRESETS[args.preset].copy()
    if args.events:            cfg["events"] = args.events
    if args.ips:               cfg["ips"]    = args.ips
    if args.batch:             cfg["batch"]  = min(args.batch, 100)
    if args.delay is not None: cfg["delay"]  = args.delay

    return run_simulation(
        url=args.url,
        api_key=args.api_key,
        ips=IP_POOLS[cfg["ips"]],
        n_events=cfg["events"],
        batch=cfg["batch"],
        delay=cfg["delay"],
    )


if __name__ == "__main__":
    raise SystemExit(main())
