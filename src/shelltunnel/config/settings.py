"""Configuration management for shelltunnel.

Loads settings from a YAML configuration file with environment variable
overrides (``SHELLTUNNEL_`` prefix, ``__`` between nested keys).

The shell command line is intentionally absent: every session runs the
same platform shell and nothing a client sends reaches its arguments.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from shelltunnel.relay.interchange import DEFAULT_POLL_INTERVAL, DEFAULT_READ_SIZE
from shelltunnel.server.acceptor import DEFAULT_BACKLOG, DEFAULT_SOCKET_MODE
from shelltunnel.session.platform import DEFAULT_SOCKET_PATH
from shelltunnel.session.spawner import DEFAULT_REAP_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/shell-tunnel.yaml")


class DaemonConfig(BaseModel):
    socket_path: str = Field(default=DEFAULT_SOCKET_PATH)
    backlog: int = Field(default=DEFAULT_BACKLOG, ge=1, description="Pending connection queue length")
    socket_mode: int = Field(default=DEFAULT_SOCKET_MODE, ge=0, le=0o7777)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    read_size: int = Field(default=DEFAULT_READ_SIZE, gt=0)
    reap_timeout: float = Field(default=DEFAULT_REAP_TIMEOUT, ge=0)


class ClientConfig(BaseModel):
    socket_path: str = Field(default=DEFAULT_SOCKET_PATH)
    local_echo: bool = Field(default=False)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    read_size: int = Field(default=DEFAULT_READ_SIZE, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for shelltunnel.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SHELLTUNNEL_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Values present in the YAML file win over the environment; anything
    the file leaves out falls back to the environment, then defaults.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
