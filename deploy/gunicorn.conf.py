"""Gunicorn configuration for the project evaluation service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

The service is I/O-bound (document store round-trips), so one async
worker per core is enough.
"""

import multiprocessing
import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 1024

# ─── Worker processes ───────────────────────────────────────────

workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count(), 4)))
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# Requests are short CRUD round-trips; the document store transport
# timeout (DOCUMENT_STORE_TIMEOUT) bounds each call.

timeout = 60
graceful_timeout = 30
keepalive = 5

# ─── Worker recycling ──────────────────────────────────────────

max_requests = 5000
max_requests_jitter = 500

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")

# ─── Process naming ─────────────────────────────────────────────

proc_name = "project-evaluation-service"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info(
        "Starting project evaluation service — workers=%d, timeout=%ds, bind=%s",
        workers,
        timeout,
        bind,
    )


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    from services.middleware import configure_logging

    configure_logging(loglevel)
    server.log.info("Worker spawned (pid: %s)", worker.pid)
