"""
DEADMAN - dead-man's-switch heartbeat monitor.

Processes report liveness by acknowledging their monitor. When a monitor stays
silent for longer than its interval, an alarm is raised and fanned out to the
notifications registered for the monitor's group.
"""

__version__ = "0.1.0"
