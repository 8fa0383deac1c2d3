"""
Gunicorn configuration for the labour placement API.

Run with: gunicorn -c gunicorn.conf.py app.main:app
"""
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
# The in-process scheduler runs in every worker, so keep SCHEDULER_ENABLED=true
# on one instance only and use POST /api/cron/stage-reminders elsewhere.
workers = int(os.getenv("GUNICORN_WORKERS", 2))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 200

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 100

# Timeouts
timeout = 60  # document uploads
keepalive = 75  # notification streams send a heartbeat every 25 seconds
graceful_timeout = 30

# Process naming
proc_name = "labour_placement_api"

# Server mechanics
daemon = False
pidfile = None
umask = 0
tmp_upload_dir = None

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s'


# Server hooks
def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting labour placement API")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info(f"Listening on {bind} with {workers} worker(s)")


def worker_abort(worker):
    """Called when a worker is aborted (usually a timeout)."""
    worker.log.warning(f"Worker {worker.pid} aborted")
