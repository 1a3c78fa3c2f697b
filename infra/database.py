"""
Database connection and schema management.

Builds a synchronous SQLAlchemy engine for one of the supported backends
(SQLite file, MySQL, PostgreSQL), verifies it with ``SELECT 1`` and
optionally runs the schema migration.

Every handle is created with the same fixed policy:
- foreign-key constraints are not created when migrating (constraints are
  enforced by the application), and SQLite does not enforce them either
- statements run in AUTOCOMMIT, so single statements are not wrapped in a
  transaction; use Database.transaction() or Database.session() where
  atomicity matters
- tables declared on Base get singular snake_case names
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional
from urllib.parse import parse_qsl

from sqlalchemy import Connection, Engine, MetaData, create_engine, event, inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, declared_attr, sessionmaker
from sqlalchemy.schema import CreateIndex, CreateTable

from infra.config import DatabaseBackend, Settings
from infra.errors import DatabaseConnectionError, MigrationError, UnsupportedBackendError
from infra.logging import LogSink, get_logger


logger = get_logger(__name__)


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Level of the "sqlalchemy.engine" logger per configured db_log_mode
DB_LOG_LEVELS: dict[str, int] = {
    "silent": logging.CRITICAL + 1,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def table_name(class_name: str) -> str:
    """Singular snake_case table name for a model class, e.g. ArticleTag -> article_tag."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", class_name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.lower()


class Base(DeclarativeBase):
    """Declarative base for all models. Table names are derived, never pluralized."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return table_name(cls.__name__)


@dataclass(frozen=True)
class DatabaseOptions:
    """Driver policy fixed at creation time."""
    disable_foreign_key_constraint_when_migrating: bool = True
    skip_default_transaction: bool = True


@dataclass(frozen=True)
class Database:
    """
    A database handle bound to exactly one backend.

    The backend kind and the options never change after creation.
    """
    engine: Engine
    backend: DatabaseBackend
    url: URL
    session_factory: sessionmaker[Session]
    options: DatabaseOptions = field(default_factory=DatabaseOptions)

    @property
    def metadata(self) -> MetaData:
        return Base.metadata

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Explicit transaction on a fresh connection.

        Usage:
            with db.transaction() as conn:
                conn.execute(...)
                conn.execute(...)
        """
        with self.engine.connect() as conn:
            conn.execution_options(isolation_level=conn.default_isolation_level)
            with conn.begin():
                yield conn

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Context manager for ORM sessions.

        Sessions run at the dialect's default isolation level, so a unit
        of work commits on success and rolls back as a whole on errors.
        """
        with self.session_factory() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()


Migrator = Callable[[Database], None]


# =========================================
# Backend URL constructors
# =========================================

def sqlite_url(settings: Settings) -> URL:
    return URL.create("sqlite+pysqlite", database=settings.sqlite.dsn)


def mysql_url(settings: Settings) -> URL:
    conf = settings.mysql
    return URL.create(
        "mysql+pymysql",
        username=conf.username,
        password=conf.password or None,
        host=conf.host,
        port=conf.port,
        database=conf.dbname,
        query=dict(parse_qsl(conf.config)),
    )


def postgres_url(settings: Settings) -> URL:
    conf = settings.postgres
    return URL.create(
        "postgresql+psycopg",
        username=conf.username,
        password=conf.password or None,
        host=conf.host,
        port=conf.port,
        database=conf.dbname,
        query=dict(parse_qsl(conf.config)),
    )


URL_BUILDERS: dict[DatabaseBackend, Callable[[Settings], URL]] = {
    DatabaseBackend.SQLITE: sqlite_url,
    DatabaseBackend.MYSQL: mysql_url,
    DatabaseBackend.POSTGRES: postgres_url,
}


def resolve_backend(value: str) -> DatabaseBackend:
    """
    Map a backend tag to a supported backend.

    Raises:
        UnsupportedBackendError: If no driver exists for the tag
    """
    try:
        return DatabaseBackend(value)
    except ValueError:
        raise UnsupportedBackendError(str(value)) from None


def database_url(settings: Settings) -> URL:
    backend = resolve_backend(settings.db_type)
    return URL_BUILDERS[backend](settings)


def set_db_log_mode(mode: str) -> int:
    """Apply db_log_mode to SQLAlchemy's engine logger. Unknown modes mean "error"."""
    level = DB_LOG_LEVELS.get(mode, logging.ERROR)
    logging.getLogger("sqlalchemy.engine").setLevel(level)
    return level


def _disable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=OFF")
    finally:
        cursor.close()


def connect(backend: DatabaseBackend, url: URL) -> Database:
    """
    Create the engine and verify it with a round trip.

    Raises:
        DatabaseConnectionError: If the driver is missing or SELECT 1 fails
    """
    connect_args = {}
    if backend == DatabaseBackend.SQLITE:
        connect_args["check_same_thread"] = False

    options = DatabaseOptions()
    engine_kwargs = {}
    if options.skip_default_transaction:
        engine_kwargs["isolation_level"] = "AUTOCOMMIT"

    try:
        engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
    except (SQLAlchemyError, ImportError) as e:
        raise DatabaseConnectionError(
            f"Database connection failed: {e}",
            {"type": backend.value},
        ) from e

    if backend == DatabaseBackend.SQLITE:
        event.listen(engine, "connect", _disable_sqlite_foreign_keys)

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise DatabaseConnectionError(
            f"Database connection failed: {e}",
            {"type": backend.value},
        ) from e

    # ORM units of work are transactional even though plain statements are not
    session_engine = engine.execution_options(
        isolation_level=engine.dialect.default_isolation_level
    )

    return Database(
        engine=engine,
        backend=backend,
        url=url,
        session_factory=sessionmaker(
            bind=session_engine, expire_on_commit=False, autoflush=False
        ),
        options=options,
    )


def create_schema(db: Database) -> None:
    """
    Default migration: create every missing table declared on Base.

    Foreign-key constraints are left out when the handle's options say so.
    """
    include_fks = [] if db.options.disable_foreign_key_constraint_when_migrating else None

    with db.engine.connect() as conn:
        existing = set(inspect(conn).get_table_names())
        for table in db.metadata.sorted_tables:
            if table.name in existing:
                continue
            conn.execute(CreateTable(table, include_foreign_key_constraints=include_fks))
            for index in table.indexes:
                conn.execute(CreateIndex(index))


def init_database(
    settings: Settings,
    migrate: Optional[Migrator] = None,
    log: Optional[LogSink] = None,
) -> Database:
    """
    Initialize the database from settings.

    Args:
        settings: Application settings
        migrate: Schema migration to run when server.db_auto_migrate is set
            (defaults to create_schema)
        log: Sink used for diagnostics; the module logger otherwise

    Returns:
        A connected (and migrated, if requested) database handle

    Raises:
        UnsupportedBackendError: Before any connection attempt
        DatabaseConnectionError: If the database cannot be reached
        MigrationError: If the migration fails
    """
    db_logger = log.logger.bind(component="database") if log else logger
    show_credentials = settings.log.show_credentials

    backend = resolve_backend(settings.db_type)
    url = URL_BUILDERS[backend](settings)
    set_db_log_mode(settings.server.db_log_mode)

    db = connect(backend, url)
    db_logger.info(
        "Database connected",
        type=backend.value,
        dsn=url.render_as_string(hide_password=not show_credentials),
    )

    if settings.server.db_auto_migrate:
        migrate = migrate or create_schema
        try:
            migrate(db)
        except Exception as e:
            db.dispose()
            raise MigrationError(
                f"Database migration failed: {e}",
                {"type": backend.value},
            ) from e
        db_logger.info("Database auto-migration succeeded")

    return db
