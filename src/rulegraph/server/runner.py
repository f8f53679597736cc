"""Uvicorn launcher for the rules HTTP API."""

from __future__ import annotations

import os

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 41780


def get_port() -> int:
    port_env = os.environ.get("RULEGRAPH_PORT")
    if port_env:
        try:
            return int(port_env)
        except ValueError:
            pass
    return DEFAULT_PORT


def run_server(host: str = DEFAULT_HOST, port: int | None = None) -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "rulegraph.server.app:create_app",
        factory=True,
        host=host,
        port=port if port is not None else get_port(),
    )
