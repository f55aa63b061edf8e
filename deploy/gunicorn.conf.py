"""Gunicorn configuration for the Rapor gradebook service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

The school state, login tokens and the sync queue are held in process
memory, so the service runs as a single async worker.
"""

import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 512

# ─── Worker processes ───────────────────────────────────────────

workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# PDF rendering and the spreadsheet backend (15s per call, retried)
# are the slowest paths.

timeout = 120
graceful_timeout = 60   # lifespan shutdown drains the sync queue
keepalive = 5

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"                     # stdout
errorlog = "-"                      # stderr
loglevel = os.getenv("LOG_LEVEL", "info")
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(D)sμs'
)

# ─── Process naming ─────────────────────────────────────────────

proc_name = "rapor-gradebook"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting Rapor gradebook: timeout=%ds, bind=%s", timeout, bind)


def worker_exit(server, worker):
    """Called when a worker has been killed or exited."""
    server.log.info("Worker exit (pid: %s)", worker.pid)
