"""
Application configuration management.

Uses pydantic-settings for type-safe environment variable parsing.
Settings are grouped in nested sections mirroring the server's config file:
log, server, sqlite, mysql, postgres and redis. Nested values are read from
variables such as ``LOG__LEVEL`` or ``SERVER__DB_TYPE``.
"""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseBackend(str, Enum):
    """Supported database backends."""
    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRES = "postgres"


class LogSettings(BaseModel):
    # Options: "debug", "info", "warn", "error"
    level: str = "info"
    # Options: "text", "json"
    format: str = "text"
    # Empty means console output
    directory: str = ""
    # Print passwords in connection diagnostics (trusted debug builds only)
    show_credentials: bool = False


class ServerSettings(BaseModel):
    mode: str = "debug"
    port: int = 8765
    db_type: DatabaseBackend = DatabaseBackend.SQLITE
    db_auto_migrate: bool = True
    # Options: "silent", "info", "warn", "error"
    db_log_mode: str = "error"


class SqliteSettings(BaseModel):
    dsn: str = "blog.db"


class MysqlSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3306
    # Extra query string, e.g. "charset=utf8mb4"
    config: str = "charset=utf8mb4"
    dbname: str = "blog"
    username: str = "root"
    password: str = ""


class PostgresSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 5432
    config: str = ""
    dbname: str = "blog"
    username: str = "postgres"
    password: str = ""


DEFAULT_REDIS_PORT = 6379


def parse_addr(addr: str) -> tuple[str, int]:
    """
    Split ``host:port`` into host and port.

    The port defaults to 6379. IPv6 hosts are written in brackets,
    e.g. ``[::1]:6379``, and returned without them.

    Raises:
        ValueError: If the address is empty or the port is not a valid number
    """
    if addr.startswith("[") and "]" in addr:
        host, _, rest = addr[1:].partition("]")
        if rest and not rest.startswith(":"):
            raise ValueError(f"Invalid address: {addr}")
        port = rest[1:] if rest else ""
    else:
        host, sep, port = addr.rpartition(":")
        if not sep:
            host, port = addr, ""

    if not host:
        raise ValueError(f"Missing host in address: {addr}")
    if not port:
        return host, DEFAULT_REDIS_PORT
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid port in address: {addr}")
    return host, int(port)


class RedisSettings(BaseModel):
    # host:port, IPv6 hosts in brackets
    addr: str = "127.0.0.1:6379"
    password: str = ""
    db: int = 0

    @field_validator("addr")
    @classmethod
    def check_addr(cls, value: str) -> str:
        parse_addr(value)
        return value


class Settings(BaseSettings):
    """
    Application settings with validation and type coercion.

    Values are loaded from environment variables or .env file.
    All fields have sensible defaults for local development.
    An unknown ``server.db_type`` fails validation here, before any
    initializer runs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    log: LogSettings = LogSettings()
    server: ServerSettings = ServerSettings()
    sqlite: SqliteSettings = SqliteSettings()
    mysql: MysqlSettings = MysqlSettings()
    postgres: PostgresSettings = PostgresSettings()
    redis: RedisSettings = RedisSettings()

    @property
    def db_type(self) -> DatabaseBackend:
        """Backend selected by server.db_type."""
        return self.server.db_type


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings singleton.

    Use this function to get settings instance throughout the application.
    The @lru_cache ensures we only parse environment once.
    """
    return Settings()
