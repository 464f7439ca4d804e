# Overview: Transaction boundaries and row locking shared by the mutating services.

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import LedgerError, TransactionFailed

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(session: Session, func: Callable[[], T]) -> T:
    """
    Run `func` as one atomic unit of work.

    Commits when `func` returns; rolls back on any exception so storage is
    left exactly as it was before the call. Storage exceptions surface as
    TransactionFailed carrying the driver's message; business errors are
    re-raised unchanged. There is no retry: the caller decides whether to
    resubmit.
    """
    try:
        result = func()
        session.commit()
        return result
    except LedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        raise TransactionFailed(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
