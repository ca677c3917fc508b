"""
Core utilities shared across packages: clock and logging setup.
"""

from core.clock import ClockProtocol, MockClock, SystemClock, from_epoch_seconds, to_utc
from core.log_config import setup_logging

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_utc",
    "from_epoch_seconds",
    "setup_logging",
]
