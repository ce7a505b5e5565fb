"""
Starter Core - shared infrastructure for the API and the worker.

Provides settings, logging setup, database and Redis factories, and the
process-lifetime Resources handle. Nothing here knows about tasks.
"""
