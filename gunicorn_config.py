"""
Gunicorn config for the portal. The gateway's NAT rule redirects captive
clients' port 80 traffic to PORT (8080 by default).
One worker: the firewall and mail thread pools live in the process, so
concurrency comes from threads.
Run: gunicorn -c gunicorn_config.py wsgi:app
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = 120
graceful_timeout = 30
