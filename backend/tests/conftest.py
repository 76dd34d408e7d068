import pytest
from datetime import datetime, timedelta

import mysql.connector
import pymysql

from cache import clear_cache
from models import RawLogEntry
from store import EPOCH_WATERMARK

BASE_TIME = datetime(2025, 6, 20, 8, 0, 0)


def make_entry(seconds=0, sql="SELECT * FROM employees WHERE department_id = 3",
               elapsed=None, user_host="app[app] @ web01 [10.0.0.5]",
               rows_sent=1, rows_examined=10, db_name="query_logger"):
    """Helper to build a slow log entry captured `seconds` after BASE_TIME."""
    return RawLogEntry(
        captured_at=BASE_TIME + timedelta(seconds=seconds),
        actor_host_string=user_host,
        elapsed=elapsed if elapsed is not None else timedelta(milliseconds=120),
        statement_text=sql,
        rows_sent=rows_sent,
        rows_examined=rows_examined,
        db_name=db_name,
    )


class FakeStore:
    """In-memory query_log with the same watermark and duplicate-key rules."""

    def __init__(self, fail_on_calls=(), fail_when=None, stale_watermark=False):
        self.records = []
        self.insert_calls = 0
        self.fail_on_calls = set(fail_on_calls)
        self.fail_when = fail_when
        self.stale_watermark = stale_watermark
        self.unreachable = False
        self._keys = set()

    def get_watermark(self):
        if self.unreachable:
            raise mysql.connector.errors.InterfaceError(msg="Can't connect to MySQL server", errno=2003)
        if self.stale_watermark or not self.records:
            return EPOCH_WATERMARK
        return max(r.executed_at for r in self.records)

    def insert_record(self, record):
        self.insert_calls += 1
        if self.insert_calls in self.fail_on_calls or (self.fail_when and self.fail_when(record)):
            raise mysql.connector.errors.DataError(msg="Data too long for column", errno=1406)
        key = (record.executed_at, record.content_fingerprint, record.executed_by, record.client_origin)
        if key in self._keys:
            raise mysql.connector.errors.IntegrityError(msg="Duplicate entry", errno=1062)
        self._keys.add(key)
        record.id = len(self.records) + 1
        self.records.append(record)
        return record.id

    @property
    def executed_at(self):
        return [r.executed_at for r in self.records]


class FakeSource:
    """Slow log table that honours the `captured_at > cutoff` contract."""

    def __init__(self, entries=(), fail_after=None):
        self.entries = list(entries)
        self.fail_after = fail_after
        self.cutoffs = []
        self.closed = 0

    def add(self, *entries):
        self.entries.extend(entries)

    def iter_entries(self, cutoff):
        self.cutoffs.append(cutoff)
        try:
            pending = sorted((e for e in self.entries if e.captured_at > cutoff),
                             key=lambda e: e.captured_at)
            for index, entry in enumerate(pending):
                if self.fail_after is not None and index >= self.fail_after:
                    raise pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")
                yield entry
        finally:
            self.closed += 1


@pytest.fixture(autouse=True)
def _clear_report_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def source():
    return FakeSource()
