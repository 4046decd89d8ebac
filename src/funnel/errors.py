from __future__ import annotations


class FunnelError(Exception):
    """Fatal invariant violation. The control loop must not continue past one."""


class InvalidTransitionError(FunnelError):
    pass


class ConsistencyError(FunnelError):
    pass


class SyncError(RuntimeError):
    pass


class JobMissingError(FileNotFoundError):
    """A tracked job's file is gone from the location it was expected in."""
