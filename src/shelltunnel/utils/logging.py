"""Logging setup utilities for shelltunnel.

Configures logging for the entire application based on the logging
configuration settings. The daemon detaches from the invoking terminal,
so a log file is the usual way to see its diagnostics.
"""

from __future__ import annotations

import logging
import sys

from shelltunnel.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the ``shelltunnel`` logger.

    Sets up a stderr handler and, if configured, a file handler, both
    using the configured format and level. Calling it again replaces
    the handlers installed by the previous call.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("shelltunnel")
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging initialized at %s level", config.level)
