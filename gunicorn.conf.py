"""Gunicorn configuration for production deployment.

Run with: gunicorn -c gunicorn.conf.py revenue_engine.main:app
"""

import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Each worker runs its own in-process dispatcher, and per-invoice ordering only
# holds within one dispatcher. Raise this only if events are partitioned upstream.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000  # Restart workers after N requests
max_requests_jitter = 1000

# Timeout configuration
timeout = 60
graceful_timeout = 30  # Dispatcher drains its lanes on shutdown
keepalive = 5

# Process naming
proc_name = "revenue-engine"

# Logging
accesslog = "-"  # stdout
errorlog = "-"  # stderr
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# Server mechanics
daemon = False
pidfile = None
umask = 0

# SSL configuration: set via environment variables GUNICORN_KEYFILE and GUNICORN_CERTFILE
keyfile = os.getenv("GUNICORN_KEYFILE")
certfile = os.getenv("GUNICORN_CERTFILE")
