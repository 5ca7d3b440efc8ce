# gunicorn.conf.py
# Gunicorn configuration file

import logging
import os

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = 'info'

# Worker configuration
# One sync worker: generation runs are sequential and share one token cache
workers = 1
worker_class = 'sync'
# A full run resolves every candidate with a pause between them
timeout = 600

bind = f"0.0.0.0:{os.environ.get('PORT', '5001')}"

# Server mechanics
daemon = False
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None

# Hooks
def post_worker_init(worker):
    """
    Called after a worker has been forked and initialized.
    Opens the database pool up front so the first request doesn't pay for it.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"=== Post-worker init hook called for worker PID {os.getpid()} ===")

    try:
        import db_utils
        db_utils.init_connection_pool()
    except Exception as e:
        logger.error(f"Error initializing connection pool in gunicorn worker: {e}", exc_info=True)


def worker_exit(server, worker):
    """
    Called when a worker exits.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Worker {worker.pid} exiting - closing connection pool")

    try:
        import db_utils
        db_utils.close_connection_pool()
    except Exception as e:
        logger.error(f"Error closing connection pool: {e}")
