"""Base class for Cassandra-backed repositories."""

from typing import TYPE_CHECKING, Any

import structlog
from cassandra import (
    CoordinationFailure,
    OperationTimedOut,
    ReadTimeout,
    Unavailable,
    WriteTimeout,
)
from cassandra.cluster import NoHostAvailable

from elearning.core.exceptions import StorageUnavailableError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

# Driver errors that mean "try again later" rather than "bad request"
TRANSIENT_ERRORS = (
    CoordinationFailure,
    NoHostAvailable,
    OperationTimedOut,
    ReadTimeout,
    Unavailable,
    WriteTimeout,
)


class CassandraStore:
    """Holds the session and keyspace and prepares statements once.

    Subclasses implement ``_prepare_statements`` and run queries through
    :meth:`_execute`, which turns transient driver failures into
    :class:`StorageUnavailableError`.
    """

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        raise NotImplementedError

    async def _execute(self, statement: Any, params: list[Any] | None = None) -> Any:
        try:
            return await self.session.aexecute(statement, params)
        except TRANSIENT_ERRORS as e:
            logger.warning(
                "storage_unavailable",
                store=type(self).__name__,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise StorageUnavailableError from e
