"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
Usage: gunicorn -c gunicorn_config.py wsgi:app
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
threads = 2
# Keep above GATEWAY_TIMEOUT_SECONDS
timeout = 60
