"""shelltunnel -- Interactive shell access over a local UNIX socket.

A daemon listens on a well-known socket path and hands every connecting
client its own shell running on a real pseudo-terminal. The client side
puts the invoking terminal into raw mode and relays bytes both ways, so
the session feels like a local login as the daemon's user.
"""

__version__ = "0.1.0"
