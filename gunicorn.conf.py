"""Gunicorn production configuration for the Orders API.

Run from the repository root: ``gunicorn -c gunicorn.conf.py``.
"""
import multiprocessing
import os

wsgi_app = "app.main:app"
chdir = "backend"

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Report downloads and 10MB imports can run well past the default 30s.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
