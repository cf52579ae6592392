"""
Configuration tests: duration parsing, YAML/env precedence, DSN building
and the validation run at startup.
"""
import os
from datetime import timedelta

import pytest

from starter_api.config import (
    DEFAULT_JWT_SECRET,
    ConfigError,
    DatabaseSettings,
    JWTSettings,
    LoggerSettings,
    ServerSettings,
    Settings,
    load_settings,
    parse_duration,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Section constructors read APP_* variables; start each test without them."""
    for key in list(os.environ):
        if key.startswith("APP_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# parse_duration
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text,expected", [
    ("15m", timedelta(minutes=15)),
    ("1h30m", timedelta(hours=1, minutes=30)),
    ("300ms", timedelta(milliseconds=300)),
    ("24h", timedelta(hours=24)),
    ("1.5s", timedelta(seconds=1.5)),
    ("7200", timedelta(hours=2)),
    (" 90 ", timedelta(seconds=90)),
    ("0.5", timedelta(milliseconds=500)),
    (30, timedelta(seconds=30)),
])
def test_parse_durations(text, expected):
    assert parse_duration(text) == expected


def test_parse_duration_passes_other_values_through():
    assert parse_duration(True) is True
    assert parse_duration("PT5M") == "PT5M"


def test_section_accepts_go_style_and_seconds(monkeypatch):
    monkeypatch.setenv("APP_JWT_ACCESS_TOKEN_TTL", "5m")
    monkeypatch.setenv("APP_JWT_REFRESH_TOKEN_TTL", "7200")
    cfg = JWTSettings()
    assert cfg.access_token_ttl == timedelta(minutes=5)
    assert cfg.refresh_token_ttl == timedelta(hours=2)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def test_load_settings_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "server:\n"
        "  port: 9000\n"
        "  env: staging\n"
        "jwt:\n"
        "  access_token_ttl: 10m\n"
        "  refresh_token_ttl: 7200\n"
        "logger:\n"
        "  format: text\n"
    )
    loaded = load_settings(config_file)
    assert loaded.server.port == 9000
    assert loaded.jwt.access_token_ttl == timedelta(minutes=10)
    assert loaded.jwt.refresh_token_ttl == timedelta(hours=2)
    assert loaded.logger.format == "text"
    assert loaded.server.env == "staging"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_SERVER_PORT", "7000")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("server:\n  port: 9000\n")
    assert load_settings(config_file).server.port == 7000


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_settings(tmp_path / "missing.yaml")


def test_non_mapping_yaml_is_an_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_settings(config_file)


# ---------------------------------------------------------------------------
# Database DSN
# ---------------------------------------------------------------------------

def test_dsn_built_from_parts():
    cfg = DatabaseSettings(host="db", port=5433, user="app", password="s3cret", name="blog")
    assert cfg.dsn == "postgresql+asyncpg://app:s3cret@db:5433/blog?ssl=disable"
    assert "s3cret" not in cfg.safe_dsn
    assert "***" in cfg.safe_dsn


def test_explicit_url_wins():
    cfg = DatabaseSettings(url="sqlite+aiosqlite:///local.db", host="ignored")
    assert cfg.dsn == "sqlite+aiosqlite:///local.db"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _valid_settings(**sections) -> Settings:
    base = {
        "server": ServerSettings(env="development"),
        "database": DatabaseSettings(),
        "jwt": JWTSettings(secret="x" * 40),
        "logger": LoggerSettings(level="info", format="json", output="stdout"),
    }
    base.update(sections)
    return Settings(**base)


def test_defaults_are_valid():
    _valid_settings().ensure_valid()


SECTION_TYPES = {
    "server": ServerSettings,
    "database": DatabaseSettings,
    "jwt": JWTSettings,
    "logger": LoggerSettings,
}


@pytest.mark.parametrize("section,values,message", [
    ("server", {"env": "qa"}, "invalid environment"),
    ("server", {"env": "development", "default_page_size": 200}, "page sizes"),
    ("database", {"max_idle_conns": 50, "max_open_conns": 10}, "max idle connections"),
    ("database", {"type": "mysql"}, "invalid database type"),
    ("jwt", {"secret": "x" * 40, "access_token_ttl": "2h", "refresh_token_ttl": "1h"},
     "refresh token TTL must be greater"),
    ("jwt", {"secret": "x" * 40, "algorithm": "none"}, "invalid JWT algorithm"),
    ("logger", {"level": "verbose"}, "invalid log level"),
    ("logger", {"output": "syslog"}, "invalid log output"),
])
def test_invalid_settings_rejected(section, values, message):
    settings = _valid_settings(**{section: SECTION_TYPES[section](**values)})
    with pytest.raises(ConfigError, match=message):
        settings.ensure_valid()


def test_production_rejects_default_jwt_secret():
    settings = _valid_settings(
        server=ServerSettings(env="production"),
        jwt=JWTSettings(secret=DEFAULT_JWT_SECRET),
    )
    with pytest.raises(ConfigError, match="default JWT secret"):
        settings.ensure_valid()


def test_production_rejects_short_jwt_secret():
    settings = _valid_settings(
        server=ServerSettings(env="production"),
        jwt=JWTSettings(secret="short"),
    )
    with pytest.raises(ConfigError, match="at least 32 characters"):
        settings.ensure_valid()


def test_environment_helpers():
    assert ServerSettings(env="production").is_production
    assert ServerSettings(env="staging").is_staging
    assert ServerSettings(env="development").is_development
    assert ServerSettings(env="test", host="127.0.0.1", port=8081).address == "127.0.0.1:8081"
