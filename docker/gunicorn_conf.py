# Gunicorn configuration for Snapkeeper
# Only one worker runs the retention scheduler

import os
import logging

logger = logging.getLogger('gunicorn.error')

bind = os.environ.get('BIND', '0.0.0.0:5000')
workers = int(os.environ.get('WORKERS', 2))
wsgi_app = 'snapkeeper:create_app()'


def post_fork(server, worker):
    """
    Called in the worker process before the app is loaded.

    The first spawned worker (age 1) owns the scheduler so purges are not
    run once per worker. Gunicorn gives a replacement worker a new, higher
    age, so if the owner dies no worker runs scheduled retention until the
    master is restarted; POST /api/snapshots/purge still works meanwhile.
    """
    if worker.age == 1:
        os.environ['SCHEDULER_WORKER'] = 'true'
        logger.info(f"Worker PID {worker.pid} (age={worker.age}): scheduler owner")
    else:
        os.environ['SCHEDULER_WORKER'] = 'false'
        logger.info(f"Worker PID {worker.pid} (age={worker.age}): HTTP only")
