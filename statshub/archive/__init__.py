"""
Archive Module
"""
from .archiver import ArchiveReport, PeriodicArchiver
from .schedule import next_boundary, truncate, utcnow

__all__ = [
    "ArchiveReport",
    "PeriodicArchiver",
    "next_boundary",
    "truncate",
    "utcnow",
]
