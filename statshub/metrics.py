"""
Prometheus metrics for the request and archival paths.
"""

from prometheus_client import Counter, Histogram


SUBMISSIONS = Counter(
    "statshub_submissions_total",
    "Stats submissions by outcome",
    ["status"],
)

AUTH_FAILURES = Counter(
    "statshub_auth_failures_total",
    "Rejected submissions by reason",
    ["reason"],
)

ARCHIVE_CYCLES = Counter(
    "statshub_archive_cycles_total",
    "Archive cycles by dimension and outcome",
    ["dimension", "status"],
)

ARCHIVED_ROWS = Counter(
    "statshub_archived_rows_total",
    "Snapshot rows written to the warehouse",
    ["dimension"],
)

ARCHIVE_DURATION = Histogram(
    "statshub_archive_duration_seconds",
    "Time spent in one archive cycle",
    ["dimension"],
)
