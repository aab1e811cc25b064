"""Core functionality for time clock tracking."""

from time_clock.core.clock import ClockService
from time_clock.core.config import ConfigManager
from time_clock.core.models import BreakPeriod, BreakType, OvertimePolicy, TimeEntry
from time_clock.core.storage import JsonFileStore, MemoryStore, StorageGateway

__all__ = [
    "BreakPeriod",
    "BreakType",
    "ClockService",
    "ConfigManager",
    "JsonFileStore",
    "MemoryStore",
    "OvertimePolicy",
    "StorageGateway",
    "TimeEntry",
]
