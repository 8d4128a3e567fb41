"""
Pydantic models for stored honeypot events and the derived dashboard views.
"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class Event(BaseModel):
    """One stored honeypot observation."""
    id: int
    timestamp: float                          # Unix timestamp
    source_ip: str
    source_port: Optional[int] = None
    honeypot_name: str
    honeypot_type: str
    attack_type: Optional[str] = None
    payload: Optional[str] = None
    protocol: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SummaryStats(BaseModel):
    total_attacks: int
    blocked_estimate: int                     # fixed-ratio estimate, not measured
    active_sensors: int
    total_sensors: int
    threat_level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]


class TopAttacker(BaseModel):
    ip: str
    attacks: int
    last_seen: float
    last_seen_label: str                      # "Just now", "5 min ago", ...
    threat_score: int                         # 0–100


class AttackTypeBreakdown(BaseModel):
    name: str
    value: int                                # rounded percentage share
    count: int
    color: str


class TimeSeriesBucket(BaseModel):
    time: str                                 # local "HH:00"
    attacks: int
    blocked: int


class SensorStatus(BaseModel):
    name: str
    type: str
    status: Literal["online", "offline", "alert"]
    attacks_24h: int
    last_activity: Optional[float] = None


class DashboardViews(BaseModel):
    stats: SummaryStats
    top_attackers: list[TopAttacker]
    attack_types: list[AttackTypeBreakdown]
    timeseries: list[TimeSeriesBucket]
    sensors: list[SensorStatus]


class IngestResult(BaseModel):
    success: bool = True
    message: str
    ids: list[int]
