# Overview: Transaction scope and row locking shared by every mutating service.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..errors import ServiceError, StorageError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; atomic() takes the database
    write lock up front there instead.
    """
    return query.with_for_update()


def _begin_immediate(session) -> None:
    """
    On SQLite, take the write lock before the first read so check-then-act
    sequences (availability gating, amount_due reads) cannot interleave.
    """
    conn = session.connection()
    if conn.dialect.name != "sqlite":
        return
    dbapi_conn = conn.connection.dbapi_connection
    if getattr(dbapi_conn, "in_transaction", False):
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def atomic(session):
    """
    Run a multi-step mutation as one unit of work.

    Commits when the block exits normally. On any error the session is
    rolled back before the error propagates; SQLAlchemy failures surface as
    StorageError. Nothing is retried here: resubmission is the caller's call.
    """
    try:
        _begin_immediate(session)
        yield session
        session.commit()
    except ServiceError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Transaction rolled back after storage failure: %s", exc)
        raise StorageError("Database operation failed") from exc
    except Exception:
        session.rollback()
        raise
