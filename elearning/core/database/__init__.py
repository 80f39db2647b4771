"""Database connection module."""

from elearning.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    shutdown_async_cassandra,
)
from elearning.core.database.store import CassandraStore


__all__ = [
    "AsyncCassandraConnection",
    "CassandraStore",
    "init_async_cassandra",
    "shutdown_async_cassandra",
]
