"""
Background jobs: in-process timers and the Celery deployment.
"""
