"""
Tests for the startup sequence and the fail-fast exit.
"""

import json
from pathlib import Path

import pytest
import redis

from infra import bootstrap as bootstrap_module
from infra.bootstrap import Resources, bootstrap, run_or_exit
from infra.errors import CacheConnectionError


def log_messages(settings):
    log_file = next(Path(settings.log.directory).glob("*.log"))
    return [json.loads(line) for line in log_file.read_text().splitlines()]


@pytest.fixture
def live_redis(monkeypatch):
    monkeypatch.setattr(redis.Redis, "ping", lambda self, **kwargs: True)


def test_bootstrap_returns_all_resources(sqlite_settings, live_redis):
    resources = bootstrap(sqlite_settings)

    try:
        assert isinstance(resources, Resources)
        assert resources.log.path.parent == Path(sqlite_settings.log.directory)
        assert resources.db.backend.value == "sqlite"
        assert resources.cache.connection_pool.connection_kwargs["db"] == 2
        resources.db.ping()

        messages = [r["msg"] for r in log_messages(sqlite_settings)]
        assert messages == ["Database connected", "Redis connected"]
    finally:
        resources.close()


def test_bootstrap_reuses_given_sink(sqlite_settings, live_redis, make_sink, monkeypatch):
    sink = make_sink(**sqlite_settings.log.model_dump())
    monkeypatch.setattr(
        bootstrap_module,
        "init_logger",
        lambda conf: pytest.fail("init_logger called twice"),
    )

    resources = bootstrap(sqlite_settings, log=sink)

    resources.close()
    assert resources.log is sink


def test_cache_failure_disposes_database(sqlite_settings, make_sink, monkeypatch):
    disposed = []

    def refuse(self, **kwargs):
        raise redis.ConnectionError("Connection refused")

    monkeypatch.setattr(redis.Redis, "ping", refuse)
    monkeypatch.setattr(
        "infra.database.Database.dispose",
        lambda self: disposed.append(self),
    )
    sink = make_sink(**sqlite_settings.log.model_dump())

    with pytest.raises(CacheConnectionError):
        bootstrap(sqlite_settings, log=sink)

    assert len(disposed) == 1


def test_run_or_exit_terminates_on_database_failure(sqlite_settings, tmp_path):
    sqlite_settings.sqlite.dsn = str(tmp_path / "missing" / "blog.db")

    with pytest.raises(SystemExit) as exc_info:
        run_or_exit(sqlite_settings)

    record = log_messages(sqlite_settings)[-1]
    assert exc_info.value.code == 1
    assert record["level"] == "critical"
    assert record["msg"] == "Startup failed"
    assert record["error_type"] == "DatabaseConnectionError"
    assert record["type"] == "sqlite"


def test_run_or_exit_terminates_on_cache_failure(sqlite_settings, monkeypatch):
    def refuse(self, **kwargs):
        raise redis.ConnectionError("Connection refused")

    monkeypatch.setattr(redis.Redis, "ping", refuse)

    with pytest.raises(SystemExit) as exc_info:
        run_or_exit(sqlite_settings)

    messages = [r["msg"] for r in log_messages(sqlite_settings)]
    assert exc_info.value.code == 1
    assert "Redis connected" not in messages
    assert messages[-1] == "Startup failed"


def test_run_or_exit_returns_resources(sqlite_settings, live_redis):
    resources = run_or_exit(sqlite_settings)

    resources.close()
    assert resources.db.backend.value == "sqlite"


def test_close_releases_log_file(sqlite_settings, live_redis):
    resources = bootstrap(sqlite_settings)

    resources.close()

    assert resources.log.stream.closed


def test_run_or_exit_closes_log_file_on_failure(sqlite_settings, tmp_path, monkeypatch):
    sinks = []
    init_logger = bootstrap_module.init_logger

    def recording_init_logger(conf):
        sinks.append(init_logger(conf))
        return sinks[-1]

    monkeypatch.setattr(bootstrap_module, "init_logger", recording_init_logger)
    sqlite_settings.sqlite.dsn = str(tmp_path / "missing" / "blog.db")

    with pytest.raises(SystemExit):
        run_or_exit(sqlite_settings)

    assert len(sinks) == 1
    assert sinks[0].stream.closed
    assert log_messages(sqlite_settings)[-1]["msg"] == "Startup failed"
