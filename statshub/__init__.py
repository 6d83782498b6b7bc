"""
statshub

Anonymized usage stats: authenticated submission, per-dimension aggregation
in Redis and clock-aligned archival of dimension snapshots to a warehouse.
"""

__version__ = "1.0.0"
