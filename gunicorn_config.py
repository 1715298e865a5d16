"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
Settlement and the expiry sweep are row-level atomic, so any worker count is safe.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = 120
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
