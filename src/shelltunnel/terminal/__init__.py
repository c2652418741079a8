"""Local terminal handling for the client side."""

from shelltunnel.terminal.raw_mode import RawTerminal

__all__ = ["RawTerminal"]
