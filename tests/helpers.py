from __future__ import annotations

import itertools

from honeywall.models import Event

_ids = itertools.count(1)


def make_event(ts: float, **fields) -> Event:
    data = {
        "id": next(_ids),
        "timestamp": ts,
        "source_ip": "10.0.0.5",
        "honeypot_name": "SSH-01",
        "honeypot_type": "SSH Server",
        "attack_type": "SSH Brute Force",
    }
    data.update(fields)
    return Event(**data)
