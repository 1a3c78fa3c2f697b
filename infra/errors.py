"""
Startup errors.

Every initializer raises a subclass of StartupError instead of exiting.
Only the top-level caller (see infra.bootstrap.run_or_exit) decides to
terminate the process.
"""

from typing import Any, Optional


class StartupError(Exception):
    """Base exception for failures while bringing up startup resources."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnsupportedBackendError(StartupError):
    """The configured database backend has no driver."""

    def __init__(self, backend: str):
        self.backend = backend
        super().__init__(
            f"Unsupported database backend: {backend}",
            {"backend": backend},
        )


class DatabaseConnectionError(StartupError):
    """The database could not be reached or opened."""


class MigrationError(StartupError):
    """Automatic schema migration failed."""


class CacheConnectionError(StartupError):
    """The Redis PING failed."""
