"""
Pytest configuration and fixtures.
"""

import logging
import os
import sys
from pathlib import Path

import pytest
import structlog

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ.setdefault("SERVER__MODE", "test")

import blog_models  # noqa: E402,F401  registers the sample tables on Base
from infra import logging as infra_logging  # noqa: E402
from infra.config import LogSettings, Settings  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the process-wide logging state installed by init_logger."""
    yield
    structlog.reset_defaults()
    if infra_logging._handler is not None:
        logging.getLogger().removeHandler(infra_logging._handler)
        infra_logging._handler = None
    logging.getLogger("sqlalchemy.engine").setLevel(logging.NOTSET)


@pytest.fixture
def make_sink():
    """Build sinks through init_logger and close their log files afterwards."""
    sinks = []

    def _make(**overrides):
        sink = infra_logging.init_logger(LogSettings(**overrides))
        sinks.append(sink)
        return sink

    yield _make

    for sink in sinks:
        sink.close()


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def sqlite_settings(tmp_path, log_dir):
    """Settings for a SQLite file under tmp_path, logging to log_dir."""
    return Settings(
        log={"level": "debug", "format": "json", "directory": str(log_dir)},
        server={"db_type": "sqlite", "db_auto_migrate": False},
        sqlite={"dsn": str(tmp_path / "blog.db")},
        redis={"addr": "127.0.0.1:6379", "password": "s3cret", "db": 2},
    )
