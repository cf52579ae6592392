"""
Application configuration.

Settings are grouped into sections (``server``, ``database``, ``jwt``,
``logger``, ``auth``, ``cache``).  Each section is a ``BaseSettings`` bound
to its own ``APP_<SECTION>_`` environment prefix, so ``APP_SERVER_PORT``
maps onto ``settings.server.port`` and ``APP_JWT_ACCESS_TOKEN_TTL`` onto
``settings.jwt.access_token_ttl``.

Sources, highest priority first:

1. environment variables (and a ``.env`` file),
2. an optional ``config.yaml`` (``.``, ``./config``, ``/etc/app``, or the
   path in ``APP_CONFIG_FILE``),
3. the defaults declared below.

Durations accept Go-style strings (``300ms``, ``15m``, ``1h30m``), plain
seconds, or ISO-8601 durations.
"""
from __future__ import annotations

import logging
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
CONFIG_SEARCH_PATHS = (Path("."), Path("config"), Path("/etc/app"))

DEFAULT_JWT_SECRET = "your-super-secret-key-change-this-in-production"

VALID_ENVIRONMENTS = frozenset({"development", "staging", "production", "test"})
VALID_JWT_ALGORITHMS = frozenset(
    {"HS256", "HS384", "HS512", "RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}
)
VALID_LOG_LEVELS = frozenset({"debug", "info", "warn", "error", "fatal", "panic"})
VALID_LOG_FORMATS = frozenset({"json", "text"})
VALID_LOG_OUTPUTS = frozenset({"stdout", "stderr", "file"})


class ConfigError(Exception):
    """Raised when the loaded configuration is unusable."""


# ---------------------------------------------------------------------------
# Duration parsing
# ---------------------------------------------------------------------------

_DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|s|m|h))+")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_SECONDS_RE = re.compile(r"\d+(?:\.\d+)?")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> Any:
    """
    Convert a Go-style duration string (``"15m"``, ``"1h30m"``) or plain
    seconds (``7200``, ``"7200"``, ``"1.5"``) into a ``timedelta``.  Anything
    else is returned unchanged so pydantic can apply its own ``timedelta``
    parsing (ISO-8601).
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if isinstance(value, str):
        text = value.strip()
        if _SECONDS_RE.fullmatch(text):
            return timedelta(seconds=float(text))
        if _DURATION_RE.fullmatch(text):
            seconds = sum(
                float(number) * _UNIT_SECONDS[unit]
                for number, unit in _DURATION_PART_RE.findall(text)
            )
            return timedelta(seconds=seconds)
    return value


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class _Section(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Values from the YAML file arrive as init kwargs; env must win.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class ServerSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_SERVER_")

    host: str = "0.0.0.0"
    port: int = 8080
    env: str = "development"
    read_timeout: timedelta = timedelta(seconds=10)
    write_timeout: timedelta = timedelta(seconds=10)
    idle_timeout: timedelta = timedelta(seconds=60)
    shutdown_timeout: timedelta = timedelta(seconds=30)
    enable_cors: bool = True
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    @field_validator(
        "read_timeout", "write_timeout", "idle_timeout", "shutdown_timeout", mode="before"
    )
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def is_staging(self) -> bool:
        return self.env == "staging"

    @property
    def is_test(self) -> bool:
        return self.env == "test"

    @property
    def address(self) -> str:
        """``host:port`` the HTTP server binds to."""
        return f"{self.host}:{self.port}"

    def ensure_valid(self) -> None:
        if not self.host:
            raise ConfigError("server host is required")
        if not self.port:
            raise ConfigError("server port is required")
        if self.env not in VALID_ENVIRONMENTS:
            raise ConfigError(
                f"invalid environment: {self.env} "
                "(must be one of: development, staging, production, test)"
            )
        for name in ("read_timeout", "write_timeout", "idle_timeout", "shutdown_timeout"):
            if getattr(self, name) <= timedelta(0):
                raise ConfigError(f"server {name.replace('_', ' ')} must be positive")
        if self.default_page_size <= 0 or self.max_page_size < self.default_page_size:
            raise ConfigError("page sizes must be positive and default <= max")


class DatabaseSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_DATABASE_")

    type: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = "postgres"
    name: str = "starter_api"
    sslmode: str = "disable"
    # Full SQLAlchemy URL; overrides the individual connection fields.
    url: str = ""

    max_open_conns: int = 25
    max_idle_conns: int = 5
    max_lifetime: timedelta = timedelta(seconds=300)
    statement_timeout: timedelta = timedelta(seconds=30)
    migration_path: str = "./alembic"
    echo: bool = False

    @field_validator("max_lifetime", "statement_timeout", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    @property
    def dsn(self) -> str:
        """SQLAlchemy URL for the async PostgreSQL driver."""
        if self.url:
            return self.url
        url = URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.name,
            query={"ssl": self.sslmode},
        )
        return url.render_as_string(hide_password=False)

    @property
    def safe_dsn(self) -> str:
        """``dsn`` with the password masked, for logs."""
        return make_url(self.dsn).render_as_string(hide_password=True)

    def ensure_valid(self, is_production: bool) -> None:
        if self.type != "postgres":
            raise ConfigError(f"invalid database type: {self.type} (only postgres is supported)")
        if not self.url:
            if not self.host:
                raise ConfigError("database host is required")
            if not self.port:
                raise ConfigError("database port is required")
            if not self.user:
                raise ConfigError("database user is required")
            if not self.name:
                raise ConfigError("database name is required")
            if is_production and not self.password:
                raise ConfigError("database password is required in production environment")
        if self.max_open_conns <= 0:
            raise ConfigError("max open connections must be positive")
        if self.max_idle_conns <= 0:
            raise ConfigError("max idle connections must be positive")
        if self.max_idle_conns > self.max_open_conns:
            raise ConfigError("max idle connections cannot be greater than max open connections")
        if self.max_lifetime <= timedelta(0):
            raise ConfigError("connection max lifetime must be positive")
        if not self.migration_path:
            raise ConfigError("migration path is required")


class JWTSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_JWT_")

    secret: str = DEFAULT_JWT_SECRET
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(hours=24)
    issuer: str = "starter-api"
    audience: str = "starter-api-users"
    algorithm: str = "HS256"

    @field_validator("access_token_ttl", "refresh_token_ttl", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    def ensure_valid(self, is_production: bool) -> None:
        if not self.secret:
            raise ConfigError("JWT secret is required")
        if is_production:
            if len(self.secret) < 32:
                raise ConfigError("JWT secret must be at least 32 characters in production")
            if self.secret == DEFAULT_JWT_SECRET:
                raise ConfigError("please change the default JWT secret in production")
        if self.access_token_ttl <= timedelta(0):
            raise ConfigError("access token TTL must be positive")
        if self.refresh_token_ttl <= timedelta(0):
            raise ConfigError("refresh token TTL must be positive")
        if self.access_token_ttl >= self.refresh_token_ttl:
            raise ConfigError("refresh token TTL must be greater than access token TTL")
        if not self.issuer:
            raise ConfigError("JWT issuer is required")
        if not self.audience:
            raise ConfigError("JWT audience is required")
        if self.algorithm not in VALID_JWT_ALGORITHMS:
            raise ConfigError(f"invalid JWT algorithm: {self.algorithm}")


class LoggerSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_LOGGER_")

    level: str = "info"
    format: str = "json"
    output: str = "stdout"
    file_path: str = "logs/app.log"
    enable_caller: bool = True
    enable_stacktrace: bool = False

    def ensure_valid(self) -> None:
        if self.level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"invalid log level: {self.level} "
                "(valid levels: debug, info, warn, error, fatal, panic)"
            )
        if self.format not in VALID_LOG_FORMATS:
            raise ConfigError(f"invalid log format: {self.format} (valid formats: json, text)")
        if self.output not in VALID_LOG_OUTPUTS:
            raise ConfigError(
                f"invalid log output: {self.output} (valid outputs: stdout, stderr, file)"
            )


class AuthSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_AUTH_")

    session_ttl: timedelta = timedelta(days=30)
    bcrypt_rounds: int = 12

    @field_validator("session_ttl", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    def ensure_valid(self) -> None:
        if self.session_ttl <= timedelta(0):
            raise ConfigError("session TTL must be positive")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigError("bcrypt rounds must be between 4 and 31")


class CacheSettings(_Section):
    model_config = SettingsConfigDict(env_prefix="APP_CACHE_")

    redis_url: str = "redis://localhost:6379/0"
    enabled: bool = True
    default_ttl: timedelta = timedelta(seconds=60)

    @field_validator("default_ttl", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    logger: LoggerSettings = Field(default_factory=LoggerSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    def ensure_valid(self) -> None:
        """Raise ``ConfigError`` for the first invalid value found."""
        production = self.server.is_production
        self.server.ensure_valid()
        self.database.ensure_valid(production)
        self.jwt.ensure_valid(production)
        self.logger.ensure_valid()
        self.auth.ensure_valid()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SECTIONS: dict[str, type[_Section]] = {
    "server": ServerSettings,
    "database": DatabaseSettings,
    "jwt": JWTSettings,
    "logger": LoggerSettings,
    "auth": AuthSettings,
    "cache": CacheSettings,
}


def find_config_file() -> Path | None:
    explicit = os.environ.get("APP_CONFIG_FILE")
    if explicit:
        return Path(explicit)
    for directory in CONFIG_SEARCH_PATHS:
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_settings(config_file: str | Path | None = None) -> Settings:
    """
    Build a ``Settings`` from the YAML file (if any), the environment and
    the defaults.  A missing file is not an error unless it was requested
    explicitly.
    """
    path = Path(config_file) if config_file else find_config_file()
    raw: dict[str, Any] = {}
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")
        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"config file {path} must contain a mapping at the top level")
        logger.info("Using config file: %s", path)
    else:
        logger.info("No config file found. Using environment variables and defaults.")

    sections = {}
    for name, section_cls in _SECTIONS.items():
        values = raw.get(name) or {}
        if not isinstance(values, dict):
            raise ConfigError(f"config section '{name}' must be a mapping")
        sections[name] = section_cls(**values)
    return Settings(**sections)


settings = load_settings()
