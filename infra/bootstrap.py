"""
Startup sequence.

bootstrap() brings the resources up in order: logging first, so the other
initializers can report through the installed sink, then the database,
then Redis. It raises on the first failure and never retries.

run_or_exit() is the only place that turns a startup error into a fatal
log line and process termination.
"""

import sys
from dataclasses import dataclass
from typing import Optional

import redis

from infra.cache import init_redis
from infra.config import Settings
from infra.database import Database, Migrator, init_database
from infra.errors import StartupError
from infra.logging import LogSink, init_logger


@dataclass
class Resources:
    """Handles produced at startup, passed explicitly to the application."""
    log: LogSink
    db: Database
    cache: redis.Redis

    def close(self) -> None:
        self.cache.close()
        self.db.dispose()
        self.log.close()


def bootstrap(
    settings: Settings,
    migrate: Optional[Migrator] = None,
    log: Optional[LogSink] = None,
) -> Resources:
    """
    Initialize logging, database and cache.

    Args:
        settings: Application settings
        migrate: Migration passed through to init_database
        log: An already installed sink; a new one is built otherwise

    Raises:
        StartupError: On the first resource that cannot be established
    """
    if log is None:
        log = init_logger(settings.log)

    db = init_database(settings, migrate=migrate, log=log)
    try:
        cache = init_redis(settings, log=log)
    except StartupError:
        db.dispose()
        raise

    return Resources(log=log, db=db, cache=cache)


def run_or_exit(settings: Settings, migrate: Optional[Migrator] = None) -> Resources:
    """
    Run bootstrap() and terminate the process on failure.

    The failure is logged at critical level through the installed sink
    before exiting with status 1.
    """
    log = init_logger(settings.log)
    try:
        return bootstrap(settings, migrate=migrate, log=log)
    except StartupError as e:
        log.logger.critical(
            "Startup failed",
            error=e.message,
            error_type=type(e).__name__,
            **e.details,
        )
        log.close()
        sys.exit(1)
