"""
Stats Module
"""
from .models import (
    COUNTRY,
    FALLBACK,
    USER,
    Snapshot,
    StatsBundle,
    StatsSubmission,
    add_counters,
)
from .query import DimensionQueryService
from .store import RedisStatsStore, StatsStore

__all__ = [
    "COUNTRY",
    "FALLBACK",
    "USER",
    "Snapshot",
    "StatsBundle",
    "StatsSubmission",
    "add_counters",
    "DimensionQueryService",
    "RedisStatsStore",
    "StatsStore",
]
