"""Core replay logic.

This package contains the replay driver and its background housekeeping:
- Driver: re-runs a routine from the top, replaying cached outcomes and
  performing at most one fresh effect per invocation
- Cleanup: TTL-based removal of abandoned runs
"""

from durable_replay.core.driver import ReplayDriver

__all__ = ["ReplayDriver"]
