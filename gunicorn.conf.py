"""Gunicorn production configuration.

Run from the repository root: ``gunicorn -c gunicorn.conf.py``.
With ESCALATION_SCHEDULER=inprocess every worker runs its own escalation
loop; overlapping ticks are safe but wasteful, so prefer Celery beat when
running more than one worker.
"""
import multiprocessing
import os

wsgi_app = "app.main:app"
chdir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
# Each worker must build its own notification pool and scheduler thread
preload_app = False
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
