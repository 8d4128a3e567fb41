"""
HoneyWall – honeypot telemetry ingestion and aggregation service.

Sensors POST event reports to the ingestion gateway; validated events are
stored in SQLite and rolled up into the dashboard views (summary stats, top
attackers, attack-type breakdown, hourly time series, sensor health).
"""

__version__ = "0.1.0"
