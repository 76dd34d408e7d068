"""
query_log 表的读写
水位线直接取自 query_log 自身的 MAX(executed_at)，不单独保存偏移量
"""
import json
import logging
from datetime import datetime

from mysql.connector import errorcode

from db import get_db

logger = logging.getLogger(__name__)

# 空表时的水位线
EPOCH_WATERMARK = datetime(1970, 1, 1, 0, 0, 0)

INSERT_SQL = """
    INSERT INTO query_log
    (executed_at, executed_by_user, client_host, query_type, table_name,
     query_text, query_hash, duration_ms, rows_examined, rows_sent,
     used_an_index, execution_plan, error_message, is_slow_query)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


def is_duplicate_error(error):
    return getattr(error, 'errno', None) == errorcode.ER_DUP_ENTRY


class QueryLogStore:
    def __init__(self, connection_factory=get_db):
        self._connection_factory = connection_factory

    def get_watermark(self):
        """已采集记录的最大 executed_at，空表返回 EPOCH_WATERMARK"""
        db = self._connection_factory()
        cursor = None
        try:
            cursor = db.cursor()
            cursor.execute("SELECT MAX(executed_at) FROM query_log")
            row = cursor.fetchone()
        finally:
            if cursor:
                cursor.close()
            db.close()

        if not row or row[0] is None:
            return EPOCH_WATERMARK
        return row[0]

    def insert_record(self, record):
        """追加一条记录，写入成功后回填 record.id"""
        plan = json.dumps(record.execution_plan) if record.execution_plan is not None else None
        params = (
            record.executed_at,
            record.executed_by,
            record.client_origin,
            record.operation_kind,
            record.target_object,
            record.statement_text,
            record.content_fingerprint,
            record.duration_ms,
            record.rows_examined,
            record.rows_sent,
            record.used_index,
            plan,
            record.error_message,
            record.is_slow,
        )

        db = self._connection_factory()
        cursor = None
        try:
            cursor = db.cursor()
            cursor.execute(INSERT_SQL, params)
            record.id = cursor.lastrowid
            logger.debug(f"写入 query_log: log_id={record.id}, executed_at={record.executed_at}")
        finally:
            if cursor:
                cursor.close()
            db.close()
        return record.id
