#!/usr/bin/env python3
"""Exception taxonomy for synchronization runs."""


class SyncError(Exception):
    """Base class for all synchronization errors."""
    pass


class ConfigError(SyncError):
    """Raised when the mapping configuration is missing required definitions or is malformed.

    Aborts a run before any graph writes.
    """
    pass


class SourceReadError(SyncError):
    """Raised when reading a single row or lookup from the relational source fails.

    Branch-local: the walker logs it and continues with sibling branches.
    """
    pass


class GraphWriteError(SyncError):
    """Raised when a single statement in a mutation batch fails.

    Logged and dropped; the rest of the batch still executes.
    """

    def __init__(self, message: str, statement: str = None):
        super().__init__(message)
        self.statement = statement


class FatalConnectionError(SyncError):
    """Raised when the relational source or the graph store cannot be opened at all."""
    pass


class RunInProgressError(SyncError):
    """Raised when a run is requested for a source that already has one in progress."""
    pass
