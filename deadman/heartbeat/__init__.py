"""
Heartbeat Engine

Missed-heartbeat detection for DEADMAN.

Provides:
- Alarm state machine with an append-only history
- Scanner for one evaluation pass over all monitors
- Scheduler for periodic, non-overlapping scans
"""

from deadman.heartbeat.alarm import (
    AlarmStateMachine,
    TRANSITIONS,
)
from deadman.heartbeat.scanner import HeartbeatScanner
from deadman.heartbeat.scheduler import HeartbeatScheduler

__all__ = [
    "AlarmStateMachine",
    "TRANSITIONS",
    "HeartbeatScanner",
    "HeartbeatScheduler",
]
