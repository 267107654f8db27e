"""
Gunicorn configuration for the Stay Digest API.

Serves the ingestion API only; the digest worker is a separate process
(`python -m app.worker`).
Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '3000')}"

# Ingestion is one short INSERT per request; two workers cover a household of devices.
workers = int(os.environ.get("WORKERS", "2"))

# Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

# Devices retry on timeout; keep the request budget short so retries start early.
keepalive = 5
timeout = 30
graceful_timeout = 15

# stdout only; app logs go through structlog on the same stream.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
