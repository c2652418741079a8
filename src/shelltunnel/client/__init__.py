"""Client side: local terminal to remote shell proxy."""

from shelltunnel.client.proxy import ClientConnectError, ClientProxy, run_client

__all__ = ["ClientConnectError", "ClientProxy", "run_client"]
