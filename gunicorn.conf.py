# Gunicorn configuration file
#   gunicorn -c gunicorn.conf.py run:app

import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8065')}"

# Collections live in process memory, so a single worker serves every request;
# concurrency comes from threads.
workers = 1
worker_class = "gthread"
threads = int(os.environ.get('GUNICORN_THREADS', '8'))
timeout = 120

# Background price refreshes run on daemon threads inside the worker
preload_app = True

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()


class HealthCheckFilter:
    """Drop access log lines for successful /health probes."""

    def filter(self, record):
        message = record.getMessage()
        return not ('/health' in message and ' 200 ' in message)


def when_ready(server):
    import logging
    logging.getLogger("gunicorn.access").addFilter(HealthCheckFilter())


proc_name = "portfolio_manager"
pidfile = "/tmp/gunicorn.pid"
