"""Gunicorn configuration for the eventsink EventListener service."""

import multiprocessing
import os

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', 8080)}"
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
# Trigger fan-out runs on a per-event thread pool inside each request thread
worker_class = "gthread"
threads = int(os.getenv("THREADS", 4))
worker_connections = 1000

# Handler timeout must exceed the dispatch deadline
timeout = int(float(os.getenv("DISPATCH_TIMEOUT", 30))) + 10
graceful_timeout = 30
keepalive = int(os.getenv("IDLE_TIMEOUT", 2))

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'
)

# Server mechanics
daemon = False
pidfile = None
temp_upload_dir = None

# Server hooks
preload_app = False
forwarded_allow_ips = "*"

# Process naming
proc_name = "eventsink"

# Environment
raw_env = [
    "PYTHONUNBUFFERED=1",
]

wsgi_app = "eventsink:create_app()"
