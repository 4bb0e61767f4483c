"""Configuration for the chrome connector, read from the environment and ``.env``."""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chrome_connector.browser.profile import BrowserProfile, ViewportSize
from chrome_connector.security.views import DEFAULT_BLOCKED_DOMAINS, SecurityPolicy

logger = logging.getLogger(__name__)

SERVER_NAME = 'mcp-chrome-connector'
DEFAULT_LOG_FILE = './logs/mcp-chrome-connector.log'


def split_csv(value: str | None) -> list[str]:
    """Split a comma separated env value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


class EnvConfig(BaseSettings):
    """Environment variable configuration using pydantic-settings."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore',
    )

    # Browser
    BROWSER_HEADLESS: bool = Field(default=True)
    BROWSER_WIDTH: int = Field(default=1280)
    BROWSER_HEIGHT: int = Field(default=720)
    BROWSER_TIMEOUT: int = Field(default=30000)
    BROWSER_ARGS: str = Field(default='')

    # Security
    ALLOWED_DOMAINS: str = Field(default='')
    BLOCKED_DOMAINS: str | None = Field(default=None)
    MAX_EXECUTION_TIME: int = Field(default=30000)
    MAX_MEMORY_USAGE: int = Field(default=512)
    ENABLE_SANDBOX: bool = Field(default=True)

    # Logging
    LOG_LEVEL: str = Field(default='info')
    LOG_FILE: str | None = Field(default=DEFAULT_LOG_FILE)
    MCP_DEBUG: bool = Field(default=False)

    # Housekeeping
    SCREENSHOT_DIR: str | None = Field(default=None)
    SESSION_IDLE_TIMEOUT_MINUTES: float = Field(default=0, ge=0)


class LoggingSettings(BaseModel):
    level: str = 'info'
    file: str | None = DEFAULT_LOG_FILE
    debug: bool = False


class ServerInfo(BaseModel):
    name: str = SERVER_NAME
    version: str = '1.0.0'


class ConnectorConfig(BaseModel):
    """Everything the server needs at startup, grouped by concern."""

    browser: BrowserProfile = Field(default_factory=BrowserProfile)
    security: SecurityPolicy = Field(default_factory=SecurityPolicy)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerInfo = Field(default_factory=ServerInfo)
    screenshot_dir: Path | None = None
    session_idle_timeout_minutes: float = Field(default=0, ge=0)


def load_connector_config(env: EnvConfig | None = None, **overrides: Any) -> ConnectorConfig:
    """Build the connector configuration from environment variables.

    Args:
        env: Pre-loaded environment settings. Read from the process environment when omitted.
        **overrides: Top-level ``ConnectorConfig`` fields that replace the loaded values.

    Returns:
        The assembled configuration.
    """
    from chrome_connector import __version__

    env = env or EnvConfig()

    blocked = split_csv(env.BLOCKED_DOMAINS) if env.BLOCKED_DOMAINS is not None else list(DEFAULT_BLOCKED_DOMAINS)

    config = ConnectorConfig(
        browser=BrowserProfile(
            headless=env.BROWSER_HEADLESS,
            viewport=ViewportSize(width=env.BROWSER_WIDTH, height=env.BROWSER_HEIGHT),
            timeout_ms=env.BROWSER_TIMEOUT,
            args=split_csv(env.BROWSER_ARGS),
        ),
        security=SecurityPolicy(
            allowed_domains=tuple(split_csv(env.ALLOWED_DOMAINS)),
            blocked_domains=tuple(blocked),
            max_execution_time_ms=env.MAX_EXECUTION_TIME,
            max_memory_mb=env.MAX_MEMORY_USAGE,
            enable_sandbox=env.ENABLE_SANDBOX,
        ),
        logging=LoggingSettings(level=env.LOG_LEVEL, file=env.LOG_FILE or None, debug=env.MCP_DEBUG),
        server=ServerInfo(version=__version__),
        screenshot_dir=Path(env.SCREENSHOT_DIR).expanduser() if env.SCREENSHOT_DIR else None,
        session_idle_timeout_minutes=env.SESSION_IDLE_TIMEOUT_MINUTES,
    )
    if overrides:
        config = config.model_copy(update=overrides)
    logger.debug(f'Loaded connector config: {config.model_dump(exclude={"browser": {"extra_http_headers"}})}')
    return config
