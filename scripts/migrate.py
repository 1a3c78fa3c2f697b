"""
Database migration script.

Connects to the configured database and creates the schema, regardless of
server.db_auto_migrate. Exits with status 1 on failure.

Usage:
    python -m scripts.migrate
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from infra.config import get_settings
from infra.database import init_database
from infra.errors import StartupError
from infra.logging import init_logger


def main() -> int:
    settings = get_settings()
    settings = settings.model_copy(
        update={"server": settings.server.model_copy(update={"db_auto_migrate": True})}
    )
    log = init_logger(settings.log)

    try:
        db = init_database(settings, log=log)
    except StartupError as e:
        log.logger.critical("Migration failed", error=e.message, **e.details)
        log.close()
        return 1

    db.dispose()
    log.close()
    print("Database migration complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
