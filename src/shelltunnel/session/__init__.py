"""Pseudo-terminal shell sessions.

Each accepted connection gets one ShellSession: a pty pair, a shell
process attached to the slave side, and a relay on the master side.
"""

from shelltunnel.session.platform import PosixPtyPlatform, PtyPlatform
from shelltunnel.session.spawner import SessionError, ShellSession, spawn_shell

__all__ = [
    "PosixPtyPlatform",
    "PtyPlatform",
    "SessionError",
    "ShellSession",
    "spawn_shell",
]
