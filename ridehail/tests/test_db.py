import pytest
from django.db import IntegrityError, OperationalError, connection, transaction

from ridehail.db import is_statement_retryable, session_lock_wait
from ridehail.exceptions import TransientStoreError


class FakeCursor:
    def __init__(self, executed, current):
        self.executed = executed
        self.current = current

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchone(self):
        return (self.current,)


@pytest.fixture
def mysql_session(monkeypatch, settings):
    settings.RIDE_LOCK_WAIT_TIMEOUTS = {'BOOKING': 10}
    executed = []
    monkeypatch.setattr(connection, 'vendor', 'mysql')
    monkeypatch.setattr(connection, 'cursor', lambda: FakeCursor(executed, 50))
    return executed


@pytest.mark.parametrize('exc, expected', [
    (OperationalError(1205, 'Lock wait timeout exceeded; try restarting transaction'), True),
    (OperationalError('database is locked'), True),
    (TransientStoreError(), True),
    (OperationalError(1213, 'Deadlock found when trying to get lock'), False),
    (OperationalError(2013, 'Lost connection to MySQL server during query'), False),
    (OperationalError(2006, 'MySQL server has gone away'), False),
    (IntegrityError(1062, 'Duplicate entry'), False),
])
def test_statement_retryable_classification(exc, expected):
    assert is_statement_retryable(exc) is expected


@pytest.mark.django_db
def test_statement_not_retryable_once_transaction_is_doomed():
    lock_timeout = OperationalError(1205, 'Lock wait timeout exceeded')
    with transaction.atomic():
        transaction.set_rollback(True)
        assert is_statement_retryable(lock_timeout) is False
        transaction.set_rollback(False)
        assert is_statement_retryable(lock_timeout) is True


def test_session_lock_wait_restores_previous_value(mysql_session):
    with session_lock_wait('BOOKING'):
        assert mysql_session[-1] == ('SET SESSION innodb_lock_wait_timeout = %s', [10])

    assert mysql_session == [
        ('SELECT @@SESSION.innodb_lock_wait_timeout', None),
        ('SET SESSION innodb_lock_wait_timeout = %s', [10]),
        ('SET SESSION innodb_lock_wait_timeout = %s', [50]),
    ]


def test_session_lock_wait_restores_when_block_fails(mysql_session):
    with pytest.raises(OperationalError):
        with session_lock_wait('BOOKING'):
            raise OperationalError(1213, 'Deadlock found when trying to get lock')

    assert mysql_session[-1] == ('SET SESSION innodb_lock_wait_timeout = %s', [50])


def test_session_lock_wait_skipped_on_other_backends(monkeypatch):
    executed = []
    monkeypatch.setattr(connection, 'vendor', 'sqlite')
    monkeypatch.setattr(connection, 'cursor', lambda: FakeCursor(executed, 50))

    with session_lock_wait('BOOKING'):
        pass
    assert executed == []
