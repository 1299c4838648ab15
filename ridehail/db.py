import logging
import time
from contextlib import contextmanager

from django.conf import settings
from django.db import DatabaseError, InterfaceError, OperationalError, connection

from .exceptions import PersistenceFailure, TransientStoreError
from .services.retry import BackoffPolicy, call_with_retry

logger = logging.getLogger(__name__)

# MySQL server/client error codes treated as transient
TRANSIENT_ERROR_CODES = {
    1040,  # ER_CON_COUNT_ERROR (too many connections)
    1203,  # ER_TOO_MANY_USER_CONNECTIONS
    1205,  # ER_LOCK_WAIT_TIMEOUT
    1213,  # ER_LOCK_DEADLOCK
    2002,  # CR_CONNECTION_ERROR
    2003,  # CR_CONN_HOST_ERROR (connection refused)
    2006,  # CR_SERVER_GONE_ERROR
    2013,  # CR_SERVER_LOST (connection reset / timeout)
}

TRANSIENT_MESSAGES = (
    "lock wait timeout",
    "deadlock",
    "database is locked",
    "connection reset",
    "connection refused",
    "timed out",
    "too many connections",
)

# Only the failed statement is undone; the enclosing transaction stays usable
STATEMENT_ERROR_CODES = {1205}
STATEMENT_MESSAGES = ("lock wait timeout", "database is locked")


def _matches(exc: BaseException, codes, messages) -> bool:
    for err in (exc, exc.__cause__):
        if err is None:
            continue
        args = getattr(err, "args", ())
        if args and isinstance(args[0], int) and args[0] in codes:
            return True
        message = str(err).lower()
        if any(m in message for m in messages):
            return True
    return False


def is_transient_store_error(exc: BaseException) -> bool:
    if isinstance(exc, TransientStoreError):
        return True
    if not isinstance(exc, (OperationalError, InterfaceError)):
        return False
    return _matches(exc, TRANSIENT_ERROR_CODES, TRANSIENT_MESSAGES)


def is_statement_retryable(exc: BaseException) -> bool:
    """Transient errors that can be retried inside a savepoint.

    A deadlock or a lost connection rolls back the whole transaction, so
    those are left to whoever owns the outermost transaction.
    """
    if connection.needs_rollback or not is_transient_store_error(exc):
        return False
    if isinstance(exc, TransientStoreError):
        return True
    return _matches(exc, STATEMENT_ERROR_CODES, STATEMENT_MESSAGES)


def retry_policy(name: str) -> BackoffPolicy:
    return BackoffPolicy.from_config(getattr(settings, "RIDE_RETRY", {}).get(name, {}))


def lock_wait_timeout(name: str) -> int:
    return int(getattr(settings, "RIDE_LOCK_WAIT_TIMEOUTS", {}).get(name, 10))


@contextmanager
def session_lock_wait(name: str):
    """Fail fast on row-lock contention inside the block (MySQL only).

    The session's previous innodb_lock_wait_timeout is restored on exit so
    it does not stick to a reused connection.
    """
    if connection.vendor != "mysql":
        yield
        return

    seconds = lock_wait_timeout(name)
    with connection.cursor() as cursor:
        cursor.execute("SELECT @@SESSION.innodb_lock_wait_timeout")
        previous = cursor.fetchone()[0]
        cursor.execute("SET SESSION innodb_lock_wait_timeout = %s", [seconds])
    try:
        yield
    finally:
        try:
            with connection.cursor() as cursor:
                cursor.execute("SET SESSION innodb_lock_wait_timeout = %s", [previous])
        except DatabaseError:
            logger.warning("Could not restore innodb_lock_wait_timeout to %s", previous, exc_info=True)


def with_store_retry(operation, policy: BackoffPolicy, sleep=time.sleep, is_retryable=is_transient_store_error):
    """Retry `operation` on errors `is_retryable` accepts.

    A retryable error that survives every retry becomes PersistenceFailure;
    any other error propagates as is.
    """
    try:
        return call_with_retry(operation, is_retryable, policy=policy, sleep=sleep)
    except (DatabaseError, TransientStoreError) as exc:
        if is_retryable(exc):
            raise PersistenceFailure() from exc
        raise
