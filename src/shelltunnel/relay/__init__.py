"""Byte interchange engine shared by the daemon and the client."""

from shelltunnel.relay.interchange import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_READ_SIZE,
    byte_interchange,
)

__all__ = ["DEFAULT_POLL_INTERVAL", "DEFAULT_READ_SIZE", "byte_interchange"]
