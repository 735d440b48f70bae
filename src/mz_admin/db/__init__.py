"""Ephemeral store configuration and utilities."""

from .redis import close_redis, get_redis

__all__ = ["get_redis", "close_redis"]
