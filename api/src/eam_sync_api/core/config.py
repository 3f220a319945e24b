#!/usr/bin/env python3
"""
Configuration settings for the synchronization engine.

Every value can be overridden via environment variables so limits can be
tuned per deployment (local Docker vs production).
"""

import logging

from .env_utils import getenv_bool, getenv_clean, getenv_int

logger = logging.getLogger(__name__)


class SyncConfig:
    """Sync engine configuration.

    Values are read when an instance is created, so tests can patch the
    environment and build a fresh instance.
    """

    def __init__(self):
        # Mutation operations committed per graph transaction
        self.BATCH_SIZE = getenv_int("SYNC_BATCH_SIZE", 500, minimum=1)

        # Run history kept per source (newest first)
        self.HISTORY_LIMIT = getenv_int("SYNC_HISTORY_LIMIT", 20, minimum=1)
        self.HISTORY_MESSAGE_MAX = getenv_int("SYNC_HISTORY_MESSAGE_MAX", 200, minimum=10)

        # Worker threads available to concurrent runs of different sources
        self.MAX_CONCURRENT_RUNS = getenv_int("SYNC_MAX_CONCURRENT_RUNS", 4, minimum=1)

        self.SCHEDULER_ENABLED = getenv_bool("SYNC_SCHEDULER_ENABLED", True)
        self.SCHEDULE_INTERVAL_SECONDS = getenv_int("SYNC_SCHEDULE_INTERVAL_SECONDS", 3600, minimum=1)

        # Live log stream
        self.LOG_QUEUE_SIZE = getenv_int("SYNC_LOG_QUEUE_SIZE", 1000, minimum=1)
        self.LOG_KEEPALIVE_SECONDS = getenv_int("SYNC_LOG_KEEPALIVE_SECONDS", 15, minimum=1)

        # Object storage bucket holding mapping configs and the source registry
        self.BUCKET = getenv_clean("SYNC_BUCKET", "eam-sync")

        self.LOG_LEVEL = getenv_clean("LOG_LEVEL", "INFO").upper()


# Singleton instance
sync_config = SyncConfig()
