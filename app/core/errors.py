from __future__ import annotations

from sqlalchemy.exc import InterfaceError, OperationalError

TRANSIENT_DB_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    TimeoutError,
    ConnectionError,
)


class TransientPersistenceError(Exception):
    """Connection loss or timeout while talking to the database; safe to retry."""
