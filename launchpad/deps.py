"""Dependency helpers for FastAPI routes."""

from starlette.requests import HTTPConnection


def get_runtime(conn: HTTPConnection):
    """Return the :class:`LaunchpadRuntime` attached to the running app."""
    return conn.app.state.runtime


__all__ = ["get_runtime"]
