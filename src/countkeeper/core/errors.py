"""Exception taxonomy shared by the counter, retention and rollup services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

if TYPE_CHECKING:
    from countkeeper.services.scheduler import Cron


class CountkeeperError(RuntimeError):
    """Base exception for all countkeeper failures."""


class ConfigurationError(CountkeeperError, ValueError):
    """Raised for invalid configuration or caller input.

    Bad period tokens, malformed cron expressions, unknown time zones,
    unknown counter or log types. Raised before any side effect happens.
    """


class TransientStoreError(CountkeeperError):
    """Raised when a store transaction aborts for a retryable reason.

    Lock contention, statement timeouts and lost connections end up here.
    The transaction has been rolled back in full; the next scheduled
    occurrence is the retry.
    """


class IntegrityViolation(CountkeeperError):
    """Raised when a write violates a key or foreign key constraint."""


class CallbackError(CountkeeperError):
    """Wraps an exception raised by a scheduled job."""

    def __init__(self, cron: Cron, original: BaseException) -> None:
        super().__init__(f"job {cron.func_name!r} ({cron.spec}) raised {original!r}")
        self.cron = cron
        self.original = original


def translate_store_error(exc: DBAPIError) -> CountkeeperError:
    """Map a SQLAlchemy DBAPI error onto the countkeeper taxonomy."""
    if isinstance(exc, IntegrityError):
        return IntegrityViolation(str(exc.orig))
    if isinstance(exc, OperationalError) or exc.connection_invalidated:
        return TransientStoreError(str(exc.orig))
    return CountkeeperError(str(exc.orig))
