"""
Gunicorn configuration for statshub.

Each worker runs the full app, archiver included. Keep WORKERS at 1 on the
archiving deployment, or scale ingestion-only deployments with
ARCHIVE_ENABLED=false.
"""

import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8080")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5
graceful_timeout = 45  # longer than ARCHIVE_SHUTDOWN_TIMEOUT so cycles can drain

proc_name = "statshub"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None  # requests are logged by RequestLoggingMiddleware without query strings
