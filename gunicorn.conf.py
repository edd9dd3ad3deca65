# use in gunicorn as: env/bin/gunicorn artifactcache.api:app -c gunicorn.conf.py

# Workers
# The artifact index is kept in memory by each worker, so more than one worker would serve stale HIT/MISS answers
workers = 1
worker_class = 'uvicorn.workers.UvicornWorker'

# Socket
bind = '0.0.0.0:3939'

# Logging
# loglevel = 'debug'
# accesslog = '/tmp/artifactcache_access_log'
# errorlog =  '/tmp/artifactcache_error_log'
